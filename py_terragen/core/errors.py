"""Exceptions raised by the terrain core."""


class MeshInvariantError(RuntimeError):
    """
    A linkage invariant of the node/edge/face or tile/border graph is broken.

    Raised when an index walk finds a face that does not contain the node
    being walked, an edge without the expected face back-link, or a border
    shared by other than two tiles. These indicate a bug in mesh
    construction and are never recoverable.
    """
