"""geo-dvf bulk file scan (bulk dataset variant).

Files follow the data.gouv.fr layout::

    {data_dir}/{year}/departements/{code_departement}.csv.gz

One line per mutation × local; a mutation selling several dwellings at once
repeats the total ``valeur_fonciere`` on every line, so such mutations are
skipped rather than attributing the whole price to each dwelling.
"""

from __future__ import annotations

import asyncio
import csv
import gzip
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

import httpx

from dvf_estimator.errors import DataSourceUnavailable
from dvf_estimator.sources.base import TransactionQuery, TransactionSource, canonical_row, format_address
from dvf_estimator.tools.geo import bounding_box

logger = logging.getLogger(__name__)

DWELLING_LABELS = {"Maison", "Appartement"}
SALE_NATURE = "Vente"


def _to_float(text: str | None) -> float | None:
    raw = (text or "").strip().replace(",", ".")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _write_file(target: Path, content: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)


@dataclass
class _CommuneCentroid:
    lat_sum: float = 0.0
    lon_sum: float = 0.0
    count: int = 0

    def add(self, lat: float, lon: float) -> None:
        self.lat_sum += lat
        self.lon_sum += lon
        self.count += 1

    def point(self) -> tuple[float, float] | None:
        if not self.count:
            return None
        return self.lat_sum / self.count, self.lon_sum / self.count


@dataclass
class _ScanState:
    centroids: dict[str, _CommuneCentroid] = field(default_factory=dict)
    dwellings: dict[str, list[dict]] = field(default_factory=dict)


def scan_dvf_lines(lines: Iterable[str], query: TransactionQuery, delimiter: str = ",", state: _ScanState | None = None) -> _ScanState:
    """Accumulate candidate dwelling lines and commune centroids from one file."""
    state = state or _ScanState()
    lat_min, lat_max, lon_min, lon_max = bounding_box(query.center, query.radius_km)
    wanted_type = query.property_type.dvf_label if query.property_type else None
    min_date = query.min_date.isoformat()

    for row in csv.DictReader(lines, delimiter=delimiter):
        lat = _to_float(row.get("latitude"))
        lon = _to_float(row.get("longitude"))
        commune = (row.get("code_commune") or "").strip()
        if lat is not None and lon is not None and commune:
            state.centroids.setdefault(commune, _CommuneCentroid()).add(lat, lon)

        type_local = (row.get("type_local") or "").strip()
        if type_local not in DWELLING_LABELS:
            continue
        if (row.get("nature_mutation") or "").strip() != SALE_NATURE:
            continue
        if (row.get("date_mutation") or "") < min_date:
            continue

        mutation_id = (row.get("id_mutation") or "").strip()
        if not mutation_id:
            continue
        # keep every dwelling line of the mutation so multi-dwelling sales can be detected
        bucket = state.dwellings.setdefault(mutation_id, [])
        bucket.append(row)

        if wanted_type and type_local != wanted_type:
            row["_skip"] = "type"
        elif lat is None or lon is None:
            if (row.get("code_postal") or "").strip() != query.locality.postal_code:
                row["_skip"] = "no coordinates outside locality"
        elif not (lat_min <= lat <= lat_max and lon_min <= lon <= lon_max):
            row["_skip"] = "outside box"

    return state


def build_rows(state: _ScanState) -> list[dict]:
    """Turn scanned lines into canonical rows (one per single-dwelling mutation)."""
    rows: list[dict] = []
    for mutation_id, lines in state.dwellings.items():
        if len(lines) != 1:
            continue
        line = lines[0]
        if line.get("_skip"):
            continue

        lat = _to_float(line.get("latitude"))
        lon = _to_float(line.get("longitude"))
        approximate = False
        if lat is None or lon is None:
            centroid = state.centroids.get((line.get("code_commune") or "").strip())
            point = centroid.point() if centroid else None
            if point is not None:
                lat, lon = point
                approximate = True

        rows.append(
            canonical_row(
                id=mutation_id,
                date=line.get("date_mutation"),
                price=line.get("valeur_fonciere"),
                surface=line.get("surface_reelle_bati"),
                rooms=line.get("nombre_pieces_principales"),
                type=line.get("type_local"),
                address=format_address(
                    line.get("adresse_numero"),
                    line.get("adresse_suffixe"),
                    line.get("adresse_nom_voie"),
                    line.get("nom_commune"),
                ),
                latitude=lat,
                longitude=lon,
                approximate=approximate,
            )
        )
    return rows


class DvfFileSource(TransactionSource):
    """Scans departement files of the geo-dvf dataset."""

    name = "dvf_files"

    def __init__(
        self,
        data_dir: str | Path,
        download_url: str = "",
        download_missing: bool = False,
        delimiter: str = ",",
        today: date | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.download_url = download_url.rstrip("/")
        self.download_missing = download_missing
        self.delimiter = delimiter
        self._today = today
        self._transport = transport

    def candidate_paths(self, year: int, departement: str) -> list[Path]:
        base = self.data_dir / str(year) / "departements"
        return [base / f"{departement}.csv.gz", base / f"{departement}.csv"]

    async def _download(self, year: int, departement: str) -> Path | None:
        url = f"{self.download_url}/{year}/departements/{departement}.csv.gz"
        target = self.candidate_paths(year, departement)[0]
        try:
            async with httpx.AsyncClient(timeout=120, transport=self._transport, follow_redirects=True) as client:
                response = await client.get(url)
            if response.status_code == 404:
                logger.info("No geo-dvf file for %s/%s", year, departement)
                return None
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("geo-dvf download failed [%s/%s]: %s", year, departement, exc)
            return None

        await asyncio.to_thread(_write_file, target, response.content)
        logger.info("Downloaded geo-dvf %s/%s (%d bytes)", year, departement, len(response.content))
        return target

    def local_files(self, years: list[int], departement: str) -> dict[int, Path | None]:
        """First existing candidate file per year (filesystem access, run off the event loop)."""
        return {
            year: next((p for p in self.candidate_paths(year, departement) if p.exists()), None)
            for year in years
        }

    async def _resolve_files(self, query: TransactionQuery) -> list[Path]:
        today = self._today or date.today()
        years = list(range(query.min_date.year, today.year + 1))
        local = await asyncio.to_thread(self.local_files, years, query.locality.departement)
        files: list[Path] = []
        for year in years:
            existing = local[year]
            if existing is None and self.download_missing and self.download_url:
                existing = await self._download(year, query.locality.departement)
            if existing is not None:
                files.append(existing)
        return files

    def _scan(self, files: list[Path], query: TransactionQuery) -> list[dict]:
        state = _ScanState()
        for path in files:
            opener = gzip.open if path.suffix == ".gz" else open
            with opener(path, "rt", encoding="utf-8", newline="") as fh:
                scan_dvf_lines(fh, query, delimiter=self.delimiter, state=state)
        return build_rows(state)

    async def fetch(self, query: TransactionQuery) -> list[dict]:
        files = await self._resolve_files(query)
        if not files:
            raise DataSourceUnavailable(self.name, f"no geo-dvf file for departement {query.locality.departement}")

        try:
            rows = await asyncio.to_thread(self._scan, files, query)
        except (OSError, csv.Error, UnicodeDecodeError) as exc:
            raise DataSourceUnavailable(self.name, f"unreadable file: {exc}") from exc

        logger.debug("geo-dvf scan: %d files, %d rows (dep=%s)", len(files), len(rows), query.locality.departement)
        return rows
