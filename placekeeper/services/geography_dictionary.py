"""Static lookup tables for zero-network address classification."""

from __future__ import annotations

from typing import NamedTuple

# Insertion order is match priority.
CITY_TO_DEPARTMENT: dict[str, str] = {
    # Atlántico
    "Barranquilla": "Atlántico",
    "Soledad": "Atlántico",
    "Malambo": "Atlántico",
    # Bogotá D.C.
    "Bogotá": "Bogotá D.C.",
    "Bogota": "Bogotá D.C.",
    # Antioquia
    "Medellín": "Antioquia",
    "Medellin": "Antioquia",
    "Bello": "Antioquia",
    "Itagüí": "Antioquia",
    "Envigado": "Antioquia",
    # Valle del Cauca
    "Cali": "Valle del Cauca",
    "Palmira": "Valle del Cauca",
    "Buenaventura": "Valle del Cauca",
    # Santander
    "Bucaramanga": "Santander",
    "Floridablanca": "Santander",
    "Girón": "Santander",
    "Cartagena": "Bolívar",
    "Cúcuta": "Norte de Santander",
    "Cucuta": "Norte de Santander",
    "Pereira": "Risaralda",
    "Manizales": "Caldas",
    "Armenia": "Quindío",
    "Ibagué": "Tolima",
    "Ibague": "Tolima",
    "Neiva": "Huila",
    "Villavicencio": "Meta",
    "Pasto": "Nariño",
    "Popayán": "Cauca",
    "Popayan": "Cauca",
    "Santa Marta": "Magdalena",
    "Valledupar": "Cesar",
    "Montería": "Córdoba",
    "Monteria": "Córdoba",
    "Sincelejo": "Sucre",
}

SECTORS: tuple[str, ...] = (
    "Norte", "Sur", "Oriente", "Occidente", "Centro",
    "Noroccidente", "Nororiente", "Suroccidente", "Suroriente",
    "Nororiental", "Noroccidental", "Suroriental", "Suroccidental",
)

# Reverse-geocoder state names -> department names used in the store.
DEPARTMENT_ALIASES: dict[str, str] = {
    "Distrito Capital de Bogotá": "Bogotá D.C.",
    "Bogotá, D.C.": "Bogotá D.C.",
    "Bogotá": "Bogotá D.C.",
    "Valle del Cauca": "Valle del Cauca",
    "Antioquia": "Antioquia",
    "Atlántico": "Atlántico",
    "Bolívar": "Bolívar",
    "Santander": "Santander",
    "Norte de Santander": "Norte de Santander",
    "Cundinamarca": "Cundinamarca",
    "Risaralda": "Risaralda",
    "Caldas": "Caldas",
    "Quindío": "Quindío",
    "Tolima": "Tolima",
    "Huila": "Huila",
    "Meta": "Meta",
    "Nariño": "Nariño",
    "Cauca": "Cauca",
    "Magdalena": "Magdalena",
    "Cesar": "Cesar",
    "Córdoba": "Córdoba",
    "Sucre": "Sucre",
}


class AddressLocation(NamedTuple):
    city: str
    department: str
    sector: str | None


def extract_city(address: str | None) -> str | None:
    if not address:
        return None
    lowered = address.lower()
    for city in CITY_TO_DEPARTMENT:
        if city.lower() in lowered:
            return city
    return None


def department_for_city(city: str | None) -> str | None:
    if not city:
        return None
    return CITY_TO_DEPARTMENT.get(city)


def extract_sector(address: str | None) -> str | None:
    if not address:
        return None
    lowered = address.lower()
    for sector in SECTORS:
        if sector.lower() in lowered:
            return sector
    return None


def classify_address(address: str | None) -> AddressLocation | None:
    """Resolve city, department and sector from free-text address, or None."""
    city = extract_city(address)
    if city is None:
        return None
    return AddressLocation(
        city=city,
        department=CITY_TO_DEPARTMENT[city],
        sector=extract_sector(address),
    )


def normalize_department(state: str | None) -> str | None:
    if not state:
        return None
    return DEPARTMENT_ALIASES.get(state, state)
