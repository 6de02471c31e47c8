# packages.py
"""Order packages offered by the upload form, with their image limits."""

from typing import Dict, List, Optional

from pydantic import BaseModel

from uploadflow.models import OrderPhase


class OrderPackage(BaseModel):
    key: str
    title: str
    limit: int
    phase: OrderPhase
    description: str


PACKAGES: Dict[str, OrderPackage] = {
    p.key: p for p in [
        OrderPackage(key="teststarter", title="Test Starter Package", limit=1,
                     phase=OrderPhase.TEST, description="Please upload 1 test image."),
        OrderPackage(key="teststandard", title="Test Standard Package", limit=1,
                     phase=OrderPhase.TEST, description="Please upload 1 test image."),
        OrderPackage(key="starter", title="Starter Package", limit=4,
                     phase=OrderPhase.PAID, description="Please upload 4 images."),
        OrderPackage(key="standard", title="Standard Package", limit=8,
                     phase=OrderPhase.PAID, description="Please upload 8 images."),
        OrderPackage(key="default", title="Image Upload", limit=10,
                     phase=OrderPhase.PAID, description="Please upload your images."),
    ]
}


def get_package(key: Optional[str]) -> Optional[OrderPackage]:
    """Looks up a package by its exact key; unknown or missing keys return None."""
    if not key:
        return None
    return PACKAGES.get(key)


def list_packages() -> List[OrderPackage]:
    return list(PACKAGES.values())
