"""Fast-forwarding a resumed walk past its checkpoint."""


class ResumeFilter:
    """Suppresses walk entries up to and including the checkpoint path.

    With no checkpoint the filter is inactive from the start. Matching is by
    exact relative path; an entry equal to the checkpoint is still skipped
    (it was already committed) and processing begins with the next one.
    """

    def __init__(self, checkpoint_path: str | None):
        self.checkpoint_path = checkpoint_path
        self.active = checkpoint_path is not None
        self.suppressed = 0

    def should_skip(self, relative_path: str) -> bool:
        if not self.active:
            return False
        self.suppressed += 1
        if relative_path == self.checkpoint_path:
            self.active = False
        return True
