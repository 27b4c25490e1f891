from sqlmodel import Field, SQLModel


class Pet(SQLModel, table=True):
    """Minimal pet row referenced by appointments; the full record lives elsewhere."""

    __tablename__ = "pets"
    id: int | None = Field(default=None, primary_key=True)
    name: str
    pet_code: str | None = Field(default=None, unique=True, index=True)
