"""
Exceptions raised by the import pipeline.

Structural errors (MalformedHierarchy) abort the whole import. Per-mesh
errors (UnresolvedMaterial, MalformedMesh) are caught by the assembler and
reported as issues alongside the partial result.
"""

from typing import NamedTuple, Optional


class RigbakeError(Exception):
    """Base exception for import pipeline errors."""
    pass


class MalformedHierarchy(RigbakeError):
    """Joint hierarchy cannot satisfy the skeleton invariants."""
    pass


class UnresolvedMaterial(RigbakeError):
    """Mesh references a material the material lookup does not know."""

    def __init__(self, node_name: str, material_name: Optional[str]):
        self.node_name = node_name
        self.material_name = material_name
        if material_name is None:
            message = f"Mesh '{node_name}' has no material"
        else:
            message = f"Mesh '{node_name}' references unknown material '{material_name}'"
        super().__init__(message)


class MalformedMesh(RigbakeError):
    """Mesh streams are inconsistent (lengths, index ranges)."""
    pass


class ImportIssue(NamedTuple):
    """A non-fatal problem reported alongside an import result."""
    kind: str                    # one of the ISSUE_* constants
    node_name: Optional[str]     # mesh node the issue belongs to
    message: str

    def __str__(self) -> str:
        if self.node_name:
            return f"[{self.kind}] {self.node_name}: {self.message}"
        return f"[{self.kind}] {self.message}"
