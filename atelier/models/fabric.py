"""Fabric model and fabric grade tiers."""
import enum
from sqlalchemy import Column, String, Boolean, Enum
from atelier.database import Base, BigId


class FabricGrade(enum.Enum):
    """Quality tier of a fabric. Selects the price column of a price row."""
    G1000 = "G1000"
    G2000 = "G2000"
    G3000 = "G3000"
    G4000 = "G4000"
    G5000 = "G5000"
    G6000 = "G6000"
    G7000 = "G7000"
    LEATHER = "LEATHER"


class Fabric(Base):
    """Fabric (tecido) offered for upholstery."""

    __tablename__ = 'fabric'

    id = Column(BigId, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    grade = Column(Enum(FabricGrade, name='fabric_grade'), nullable=False)
    active = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<Fabric(id={self.id}, name='{self.name}', grade={self.grade.value})>"
