"""
Pydantic schemas for stored authorization attributes.
"""
from typing import List
from pydantic import BaseModel, ConfigDict, Field


class AuthorizationAttrRead(BaseModel):
    """A stored attribute row."""
    id: str
    name: str = Field(..., description="Serialized clause, e.g. 'group_id=1'")
    authorizable_type: str
    authorizable_id: str

    model_config = ConfigDict(from_attributes=True)


class AttrsDiff(BaseModel):
    """Rows a reconciliation removed and added for one record."""
    authorizable_type: str
    authorizable_id: str
    added: List[str] = Field(default_factory=list)
    removed: List[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)
