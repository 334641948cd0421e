from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema for models read from ORM rows."""
    model_config = ConfigDict(from_attributes=True)
