import uuid
import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session
from sqlalchemy import func

from app.core.config import settings
from app.core.exceptions import InvalidInputException, NotFoundException
from app.core.progress import compute_progress, status_for_progress
from app.core.tasks import parse_tasks
from app.core.topics import find_similar
from app.models.learning import LearningModule, LearningUnit, utcnow
from app.schemas.learning import ModuleStatus, LearningModuleCreate, LearningModuleUpdate

# Configure logger for this module
logger = logging.getLogger(__name__)

class LearningService:
    """
    A service class containing the business logic for learning modules and units.

    A module's `progress` and `status` are derived values: every operation that
    changes its units recomputes both from the unit rows inside the same
    transaction, with the module row locked, so concurrent completions can
    never leave a stale percentage behind.
    """

    def _get_module(self, db: Session, user_id: str, module_id: str, lock: bool = False) -> LearningModule:
        query = db.query(LearningModule).filter(
            LearningModule.id == module_id,
            LearningModule.userId == user_id
        )
        if lock:
            query = query.with_for_update()
        module = query.first()
        if not module:
            logger.debug(f"LearningService: Module {module_id} not found for user {user_id}.")
            raise NotFoundException("Learning module not found", code="MODULE_NOT_FOUND")
        return module

    def _recompute_progress(self, db: Session, module: LearningModule) -> None:
        """
        Recounts the module's units and writes progress, status and updatedAt.
        The caller commits.
        """
        db.flush()
        total = db.query(func.count(LearningUnit.id)).filter(LearningUnit.moduleId == module.id).scalar() or 0
        completed = db.query(func.count(LearningUnit.id)).filter(
            LearningUnit.moduleId == module.id,
            LearningUnit.completed.is_(True)
        ).scalar() or 0

        module.progress = compute_progress(completed, total)
        module.status = status_for_progress(module.progress).value
        module.updatedAt = utcnow()
        logger.debug(f"LearningService: Module {module.id} progress {completed}/{total} -> {module.progress}% ({module.status})")

    def _append_units(self, db: Session, module: LearningModule, units: Sequence[Tuple[str, bool]]) -> int:
        max_order = db.query(func.max(LearningUnit.order)).filter(LearningUnit.moduleId == module.id).scalar()
        next_order = max_order + 1 if max_order is not None else 0

        for offset, (title, completed) in enumerate(units):
            db.add(LearningUnit(
                id=f"unit_{uuid.uuid4().hex}",
                moduleId=module.id,
                title=title,
                order=next_order + offset,
                completed=completed,
                createdAt=utcnow()
            ))

        self._recompute_progress(db, module)
        db.commit()
        db.refresh(module)
        return len(units)

    def create_or_find_module(self, db: Session, user_id: str, module_in: LearningModuleCreate) -> Tuple[LearningModule, bool]:
        """
        Returns an ACTIVE module of the user whose topic is similar to the new
        one, or creates a new module.

        Only the most recently updated active modules are considered. A reused
        module has its `updatedAt` bumped so it moves to the top of the list.

        Args:
            db: The SQLAlchemy database session.
            user_id: The principal creating the module.
            module_in: Topic, optional title/description and origin.

        Returns:
            Tuple[LearningModule, bool]: The module and whether it already existed.

        Raises:
            InvalidInputException: If the topic is missing or blank.
        """
        topic = (module_in.topic or "").strip()
        if not topic:
            raise InvalidInputException("Topic is required", code="TOPIC_REQUIRED")

        logger.info(f"LearningService: Looking for a module similar to '{topic}' for user {user_id}")
        candidates = db.query(LearningModule).filter(
            LearningModule.userId == user_id,
            LearningModule.status == ModuleStatus.ACTIVE.value
        ).order_by(LearningModule.updatedAt.desc()).limit(settings.TOPIC_MATCH_CANDIDATES).all()

        existing = find_similar(topic, candidates)
        if existing:
            existing.updatedAt = utcnow()
            db.commit()
            db.refresh(existing)
            logger.info(f"LearningService: Reusing module {existing.id} ('{existing.topic}') for topic '{topic}'")
            return existing, True

        now = utcnow()
        db_module = LearningModule(
            id=f"module_{uuid.uuid4().hex}",
            userId=user_id,
            title=(module_in.title or "").strip() or f"Aprendiendo: {topic}",
            topic=topic,
            description=module_in.description,
            status=ModuleStatus.ACTIVE.value,
            progress=0,
            conversationId=module_in.conversationId,
            isManual=module_in.isManual,
            createdAt=now,
            updatedAt=now
        )
        db.add(db_module)
        db.commit()
        db.refresh(db_module)
        logger.info(f"LearningService: Created module {db_module.id} for topic '{topic}'")
        return db_module, False

    def list_modules(self, db: Session, user_id: str) -> List[LearningModule]:
        """Most recently updated modules of the user, with their units in order."""
        modules = db.query(LearningModule).filter(
            LearningModule.userId == user_id
        ).order_by(LearningModule.updatedAt.desc()).limit(settings.MODULE_LIST_LIMIT).all()
        logger.debug(f"LearningService: Retrieved {len(modules)} modules for user {user_id}.")
        return modules

    def get_module(self, db: Session, user_id: str, module_id: str) -> LearningModule:
        return self._get_module(db, user_id, module_id)

    def update_module(self, db: Session, user_id: str, module_id: str, module_in: LearningModuleUpdate) -> LearningModule:
        """
        Updates title and/or description. Progress and status cannot be set here.

        Raises:
            NotFoundException: If the module doesn't exist for this user.
            InvalidInputException: If no field is given or the title is blank.
        """
        update_data = module_in.model_dump(exclude_unset=True, exclude_none=True)
        if not update_data:
            raise InvalidInputException("No fields to update")
        if "title" in update_data and not update_data["title"].strip():
            raise InvalidInputException("Title cannot be empty")

        db_module = self._get_module(db, user_id, module_id)
        for key, value in update_data.items():
            setattr(db_module, key, value.strip() if key == "title" else value)
        db_module.updatedAt = utcnow()

        db.commit()
        db.refresh(db_module)
        logger.debug(f"LearningService: Updated module {module_id}: {list(update_data)}")
        return db_module

    def delete_module(self, db: Session, user_id: str, module_id: str) -> None:
        """Deletes a module; its units are removed with it."""
        db_module = self._get_module(db, user_id, module_id)
        db.delete(db_module)
        db.commit()
        logger.info(f"LearningService: Deleted module {module_id}")

    def add_units(self, db: Session, user_id: str, module_id: str, titles: List[str]) -> Tuple[LearningModule, int]:
        """
        Appends units after the current last unit.

        New units start incomplete, so a COMPLETED module that gains units
        drops back to ACTIVE with a lower percentage.

        Returns:
            Tuple[LearningModule, int]: The refreshed module and the number of units added.

        Raises:
            NotFoundException: If the module doesn't exist for this user.
            InvalidInputException: If the list is empty or a title is blank.
        """
        if not titles:
            raise InvalidInputException("At least one unit is required", code="UNITS_REQUIRED")
        cleaned = [(title or "").strip() for title in titles]
        if not all(cleaned):
            raise InvalidInputException("Unit titles cannot be empty")

        db_module = self._get_module(db, user_id, module_id, lock=True)
        added = self._append_units(db, db_module, [(title, False) for title in cleaned])
        logger.info(f"LearningService: Added {added} units to module {module_id}")
        return db_module, added

    def add_units_from_text(self, db: Session, user_id: str, module_id: str, content: str) -> Tuple[LearningModule, int]:
        """
        Appends the task list found in a chat message as units.

        Checked items (`- [x]`) are created already completed.

        Raises:
            NotFoundException: If the module doesn't exist for this user.
            InvalidInputException: If the message holds fewer than two tasks.
        """
        tasks = parse_tasks(content)
        if not tasks:
            raise InvalidInputException("No task list found in the content", code="NO_TASKS_FOUND")

        db_module = self._get_module(db, user_id, module_id, lock=True)
        added = self._append_units(db, db_module, [(task.title, task.completed) for task in tasks])
        logger.info(f"LearningService: Added {added} parsed tasks to module {module_id}")
        return db_module, added

    def set_unit_completion(
        self,
        db: Session,
        user_id: str,
        unit_id: str,
        completed: bool,
        module_id: Optional[str] = None
    ) -> LearningModule:
        """
        Marks a unit completed or not and recomputes the module's progress.

        The module row is locked before the unit is written so that two
        completions racing on the same module serialize; the count that
        produces the percentage always sees both writes.

        Returns:
            LearningModule: The refreshed module.

        Raises:
            InvalidInputException: If no unit id is given.
            NotFoundException: If the unit doesn't exist, belongs to another
                module than `module_id`, or to another user.
        """
        if not unit_id:
            raise InvalidInputException("unitId is required")

        db_unit = db.query(LearningUnit).filter(LearningUnit.id == unit_id).first()
        if not db_unit or (module_id and db_unit.moduleId != module_id):
            raise NotFoundException("Learning unit not found", code="UNIT_NOT_FOUND")

        db_module = self._get_module(db, user_id, db_unit.moduleId, lock=True)
        db_unit.completed = completed
        self._recompute_progress(db, db_module)
        db.commit()
        db.refresh(db_module)
        logger.info(f"LearningService: Unit {unit_id} completed={completed}; module {db_module.id} at {db_module.progress}%")
        return db_module


# Create a single instance of the service to be used as a dependency
learning_service = LearningService()

def get_learning_service() -> LearningService:
    """
    Dependency function to provide the learning service instance.
    """
    return learning_service
