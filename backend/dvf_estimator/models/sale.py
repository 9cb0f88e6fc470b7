from datetime import date

from sqlalchemy import Date, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from dvf_estimator.database import Base


class VenteDvf(Base):
    """Imported DVF sale line (one row per single-dwelling mutation)."""

    __tablename__ = "ventes_dvf"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    date_mutation: Mapped[date] = mapped_column(Date, index=True)
    nature_mutation: Mapped[str | None] = mapped_column(String(50), nullable=True)
    valeur_fonciere: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Address
    adresse_numero: Mapped[str | None] = mapped_column(String(10), nullable=True)
    adresse_nom_voie: Mapped[str | None] = mapped_column(String(200), nullable=True)
    code_postal: Mapped[str | None] = mapped_column(String(5), nullable=True)
    nom_commune: Mapped[str | None] = mapped_column(String(100), nullable=True)
    code_commune: Mapped[str | None] = mapped_column(String(5), nullable=True)
    code_departement: Mapped[str] = mapped_column(String(3), index=True)

    type_local: Mapped[str | None] = mapped_column(String(50), nullable=True)
    surface_reelle_bati: Mapped[float | None] = mapped_column(Float, nullable=True)
    nombre_pieces_principales: Mapped[int | None] = mapped_column(Integer, nullable=True)

    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)


Index("idx_ventes_dvf_lat_lon", VenteDvf.latitude, VenteDvf.longitude)
