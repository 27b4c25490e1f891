from sqlmodel import Field, SQLModel


class Practitioner(SQLModel, table=True):
    __tablename__ = "practitioners"
    id: int | None = Field(default=None, primary_key=True)
    full_name: str
    is_bookable: bool = True
    is_active: bool = True
