# errors.py


class ROIGeometryError(Exception):
    """Base class for contract violations raised by the ROI geometry engine."""


class UnsupportedROIError(ROIGeometryError, TypeError):
    """An unknown ROI kind or geometry type was passed to a conversion."""


class PlaneMismatchError(ROIGeometryError, ValueError):
    """Two ROIs living on different image planes were asked to combine."""

    def __init__(self, plane1, plane2):
        super().__init__(f"Cannot combine ROIs on different planes: {plane1} vs {plane2}")
        self.plane1 = plane1
        self.plane2 = plane2
