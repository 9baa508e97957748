from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
from enum import Enum

class ModuleStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"

# --- Request Models ---
class LearningModuleCreate(BaseModel):
    """
    Pydantic model for the request body to create (or find) a learning module.
    """
    topic: Optional[str] = Field(None, description="Free-text topic. Required; a similar active module is reused.")
    title: Optional[str] = Field(None, description="Module title. Defaults to 'Aprendiendo: <topic>'.")
    description: Optional[str] = Field(None, description="Optional module description.")
    conversationId: Optional[str] = Field(None, description="Conversation the module was started from.")
    isManual: bool = Field(False, description="True when the user created the module explicitly.")

class LearningModuleUpdate(BaseModel):
    """
    Editable module fields. Progress and status are derived from the units.
    """
    title: Optional[str] = None
    description: Optional[str] = None

class LearningUnitCreate(BaseModel):
    title: str = Field(..., description="Title of the unit.")

class LearningUnitsAdd(BaseModel):
    units: List[LearningUnitCreate] = Field(default_factory=list, description="Units to append, in order.")

class LearningUnitsFromText(BaseModel):
    content: str = Field("", description="Chat message containing a task list.")

class LearningUnitCompletion(BaseModel):
    unitId: Optional[str] = Field(None, description="The unit to update.")
    completed: bool = Field(True, description="New completion flag.")

# --- Response Models ---
class LearningUnitInDB(BaseModel):
    id: str
    moduleId: str
    title: str
    order: int
    completed: bool

    model_config = ConfigDict(from_attributes=True)

class LearningModuleInDB(BaseModel):
    """
    Pydantic model representing a learning module with its ordered units.
    """
    id: str
    title: str
    topic: str
    description: Optional[str] = None
    status: ModuleStatus
    progress: int = Field(..., ge=0, le=100)
    conversationId: Optional[str] = None
    isManual: bool
    createdAt: datetime
    updatedAt: datetime
    units: List[LearningUnitInDB] = []

    model_config = ConfigDict(from_attributes=True)

class LearningModuleResult(BaseModel):
    module: LearningModuleInDB
    isExisting: bool = Field(False, description="True when an existing similar module was returned.")

class LearningUnitsResult(BaseModel):
    module: LearningModuleInDB
    unitsAdded: int

class LearningProgressResult(BaseModel):
    module: LearningModuleInDB
    progress: int
