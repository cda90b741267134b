import os
from collections.abc import Iterable

from flowguard.errors import ErrorKind, SandboxViolation


class FilesystemSandbox:
    """Resolve candidate file paths and verify they stay inside the sandbox roots."""

    def __init__(self, roots: Iterable[str], default_root: str | None = None):
        self.roots = [os.path.abspath(os.path.expanduser(r)) for r in roots]
        if not self.roots:
            raise ValueError("at least one sandbox root is required")
        self.default_root = (
            os.path.abspath(os.path.expanduser(default_root)) if default_root else self.roots[0]
        )

    def _inside(self, path: str, root: str) -> bool:
        try:
            # commonpath raises ValueError across drives (Windows)
            return os.path.commonpath([path, root]) == root
        except ValueError:
            return False

    def resolve(self, candidate: str) -> str:
        """Return the resolved absolute path. Callers must use it, never the raw input."""
        # Normalize whitespace to prevent bypass via leading spaces/tabs
        path = candidate.strip()
        if not path:
            raise SandboxViolation("Empty path", ErrorKind.SANDBOX_OUTSIDE_ROOT)

        normalized = os.path.normpath(path)
        segments = normalized.replace("\\", "/").split("/")
        if ".." in segments:
            raise SandboxViolation(
                f"Path '{candidate}' traverses outside its directory",
                ErrorKind.SANDBOX_TRAVERSAL,
            )

        if not os.path.isabs(normalized):
            normalized = os.path.join(self.default_root, normalized)
        final_path = os.path.abspath(normalized)

        if not any(self._inside(final_path, root) for root in self.roots):
            raise SandboxViolation(
                f"Path '{candidate}' is outside the sandbox roots",
                ErrorKind.SANDBOX_OUTSIDE_ROOT,
            )
        return final_path
