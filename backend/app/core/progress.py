from app.schemas.learning import ModuleStatus


def compute_progress(completed: int, total: int) -> int:
    """
    Percentage of completed units, rounded half up (1 of 8 -> 13). 0 with no units.
    """
    if total <= 0:
        return 0
    # Integer form of floor(100 * completed / total + 0.5)
    return (200 * completed + total) // (2 * total)


def status_for_progress(progress: int) -> ModuleStatus:
    return ModuleStatus.COMPLETED if progress == 100 else ModuleStatus.ACTIVE
