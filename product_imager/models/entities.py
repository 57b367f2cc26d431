from sqlmodel import Field, SQLModel


class RuntimeSetting(SQLModel, table=True):
    """Stores locally persisted settings records as key/value pairs."""

    key: str = Field(primary_key=True, max_length=100)
    value: str = Field(nullable=True)
