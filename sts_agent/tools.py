from pydantic import BaseModel


class ToolInput(BaseModel):
    """Subclass this for tool-specific input validation."""


class Tool:
    """A tool advertised to the model.

    Tools only describe themselves here; the dispatcher decides where a call
    is executed.
    """

    name: str
    description: str
    input_model: type[BaseModel] = ToolInput

    def schema(self) -> dict:
        """Return JSON schema from Pydantic model."""
        schema = self.input_model.model_json_schema()
        schema.setdefault("properties", {})
        return schema

    def validate(self, arguments: dict) -> BaseModel:
        """Validate call arguments. Raises pydantic.ValidationError."""
        return self.input_model(**arguments)
