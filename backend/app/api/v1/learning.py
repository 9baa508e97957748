import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status, Path, Response
from sqlalchemy.orm import Session

# Import services, schemas, and dependencies
from app.services.learning_service import get_learning_service, LearningService
from app.schemas.learning import (
    LearningModuleCreate,
    LearningModuleUpdate,
    LearningModuleInDB,
    LearningModuleResult,
    LearningUnitsAdd,
    LearningUnitsFromText,
    LearningUnitCompletion,
    LearningUnitsResult,
    LearningProgressResult,
)
from app.core.deps import get_current_user
from app.core.exceptions import InternalErrorException
from app.db.session import get_db

# Configure logger for this module
logger = logging.getLogger(__name__)

# Create a new router for this module.
# All routes defined here will be prefixed with what's defined in main.py.
router = APIRouter()

@router.get(
    "/modules",
    response_model=List[LearningModuleInDB],
    summary="List learning modules",
    description="Returns the caller's learning modules, most recently updated first, each with its units in order."
)
def read_modules(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
    learning_service: LearningService = Depends(get_learning_service)
):
    logger.debug(f"API: Listing learning modules for user {user_id}")
    return learning_service.list_modules(db=db, user_id=user_id)

@router.post(
    "/modules",
    response_model=LearningModuleResult,
    summary="Create or find a learning module",
    description="Creates a learning module for a topic. When an active module with a similar topic exists it is returned instead, with `isExisting` set."
)
def create_module(
    *,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
    module_in: LearningModuleCreate,
    response: Response,
    learning_service: LearningService = Depends(get_learning_service)
):
    """
    Create a learning module, or reuse a similar active one.

    Args:
        db (Session): Database session dependency.
        user_id (str): The authenticated principal.
        module_in (LearningModuleCreate): Topic and optional title/description.
        response (Response): Used to answer 201 only when a module was created.
        learning_service (LearningService): Dependency for learning operations.

    Returns:
        LearningModuleResult: The module and whether it already existed.
    """
    logger.info(f"API: Received request to create learning module for topic: {module_in.topic}")
    try:
        db_module, is_existing = learning_service.create_or_find_module(db=db, user_id=user_id, module_in=module_in)
        response.status_code = status.HTTP_200_OK if is_existing else status.HTTP_201_CREATED
        return LearningModuleResult(
            module=LearningModuleInDB.model_validate(db_module, from_attributes=True),
            isExisting=is_existing
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"API: Unexpected error creating learning module: {e}", exc_info=True)
        raise InternalErrorException("An internal error occurred while creating the module", details={"errorType": type(e).__name__})

@router.get(
    "/modules/{module_id}",
    response_model=LearningModuleInDB,
    summary="Retrieve a learning module"
)
def read_module(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
    module_id: str = Path(..., description="The ID of the module to retrieve."),
    learning_service: LearningService = Depends(get_learning_service)
):
    return learning_service.get_module(db=db, user_id=user_id, module_id=module_id)

@router.patch(
    "/modules/{module_id}",
    response_model=LearningModuleInDB,
    summary="Update a learning module",
    description="Updates the title and/or description. Progress and status are derived from the units and cannot be set."
)
def update_module(
    *,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
    module_id: str = Path(..., description="The ID of the module to update."),
    module_in: LearningModuleUpdate,
    learning_service: LearningService = Depends(get_learning_service)
):
    logger.debug(f"API: Updating learning module {module_id}")
    return learning_service.update_module(db=db, user_id=user_id, module_id=module_id, module_in=module_in)

@router.delete(
    "/modules/{module_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a learning module",
    description="Deletes the module together with all of its units."
)
def delete_module(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
    module_id: str = Path(..., description="The ID of the module to delete."),
    learning_service: LearningService = Depends(get_learning_service)
):
    logger.info(f"API: Received request to delete learning module {module_id}")
    learning_service.delete_module(db=db, user_id=user_id, module_id=module_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.post(
    "/modules/{module_id}/units",
    response_model=LearningUnitsResult,
    status_code=status.HTTP_201_CREATED,
    summary="Add units to a module",
    description="Appends units after the module's last unit and recomputes its progress."
)
def add_units(
    *,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
    module_id: str = Path(..., description="The ID of the module."),
    units_in: LearningUnitsAdd,
    learning_service: LearningService = Depends(get_learning_service)
):
    logger.info(f"API: Adding {len(units_in.units)} units to module {module_id}")
    try:
        db_module, added = learning_service.add_units(
            db=db,
            user_id=user_id,
            module_id=module_id,
            titles=[unit.title for unit in units_in.units]
        )
        return LearningUnitsResult(module=LearningModuleInDB.model_validate(db_module, from_attributes=True), unitsAdded=added)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"API: Unexpected error adding units to module {module_id}: {e}", exc_info=True)
        raise InternalErrorException("An internal error occurred while adding units", details={"errorType": type(e).__name__})

@router.post(
    "/modules/{module_id}/units/from-text",
    response_model=LearningUnitsResult,
    status_code=status.HTTP_201_CREATED,
    summary="Add units from a chat message",
    description="Extracts a task list (checkboxes or numbered steps) from a message and appends it as units."
)
def add_units_from_text(
    *,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
    module_id: str = Path(..., description="The ID of the module."),
    text_in: LearningUnitsFromText,
    learning_service: LearningService = Depends(get_learning_service)
):
    logger.info(f"API: Parsing task list for module {module_id}")
    try:
        db_module, added = learning_service.add_units_from_text(
            db=db,
            user_id=user_id,
            module_id=module_id,
            content=text_in.content
        )
        return LearningUnitsResult(module=LearningModuleInDB.model_validate(db_module, from_attributes=True), unitsAdded=added)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"API: Unexpected error parsing tasks for module {module_id}: {e}", exc_info=True)
        raise InternalErrorException("An internal error occurred while adding units", details={"errorType": type(e).__name__})

@router.patch(
    "/modules/{module_id}/units",
    response_model=LearningProgressResult,
    summary="Complete or reopen a unit",
    description="Sets a unit's completion flag and returns the module with its recomputed progress."
)
def set_unit_completion(
    *,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
    module_id: str = Path(..., description="The ID of the module the unit belongs to."),
    completion_in: LearningUnitCompletion,
    learning_service: LearningService = Depends(get_learning_service)
):
    logger.info(f"API: Setting unit {completion_in.unitId} completed={completion_in.completed} in module {module_id}")
    try:
        db_module = learning_service.set_unit_completion(
            db=db,
            user_id=user_id,
            unit_id=completion_in.unitId,
            completed=completion_in.completed,
            module_id=module_id
        )
        return LearningProgressResult(
            module=LearningModuleInDB.model_validate(db_module, from_attributes=True),
            progress=db_module.progress
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"API: Unexpected error updating unit {completion_in.unitId}: {e}", exc_info=True)
        raise InternalErrorException("An internal error occurred while updating the unit", details={"errorType": type(e).__name__})
