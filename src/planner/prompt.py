"""Instruction text sent to the generative model."""

from datetime import date
from types import MappingProxyType
from typing import Mapping, Sequence

from models import ConstraintSet, TripData, TripDay, TripPreferences
from utils.security import sanitize

DEFAULT_DESTINATION = "destinazione sconosciuta"

TRIP_TYPE_GUIDANCE: Mapping[str, str] = MappingProxyType(
    {
        "general": "Viaggio generico: bilancia monumenti principali, cucina locale e momenti di relax.",
        "cultural": "Viaggio culturale: privilegia musei, siti storici, chiese, teatri e visite guidate.",
        "adventure": "Viaggio avventura: includi escursioni, sport all'aria aperta ed esperienze dinamiche.",
        "relax": "Viaggio di relax: ritmi lenti, terme, spiagge, parchi e pause lunghe.",
        "romantic": "Viaggio romantico: scorci panoramici, cene intime, passeggiate al tramonto.",
        "family": "Viaggio in famiglia: attività adatte ai bambini, spostamenti brevi, pause frequenti.",
        "food": "Viaggio enogastronomico: mercati, degustazioni, ristoranti tipici e cantine.",
        "nature": "Viaggio nella natura: parchi naturali, sentieri, laghi, riserve e belvedere.",
        "nightlife": "Viaggio vita notturna: aperitivi, locali, concerti ed eventi serali.",
    }
)

PACE_DESCRIPTIONS: Mapping[str, str] = MappingProxyType(
    {
        "relaxed": "rilassato con ampio tempo libero tra le attività",
        "moderate": "moderato con un buon equilibrio tra attività e tempo libero",
        "active": "attivo con molte attività durante la giornata",
        "busy": "intenso con un programma fitto di attività",
    }
)

PREFERRED_TIME_LABELS: Mapping[str, str] = MappingProxyType(
    {"morning": "mattina", "afternoon": "pomeriggio", "evening": "sera"}
)

ACTIVITY_TYPES = (
    "sightseeing", "food", "shopping", "nature", "culture", "relax", "sport", "entertainment",
)

_WEEKDAYS = ("lunedì", "martedì", "mercoledì", "giovedì", "venerdì", "sabato", "domenica")
_MONTHS = (
    "gennaio", "febbraio", "marzo", "aprile", "maggio", "giugno",
    "luglio", "agosto", "settembre", "ottobre", "novembre", "dicembre",
)

OUTPUT_FORMAT = """FORMATO DELLA RISPOSTA:
Fornisci la risposta SOLO in formato JSON con la seguente struttura:

```json
{
  "activities": [
    {
      "day_id": "ID_DEL_GIORNO",
      "day_date": "YYYY-MM-DD",
      "name": "Nome dell'attività",
      "type": "Tipo dell'attività",
      "start_time": "YYYY-MM-DDTHH:MM:00Z",
      "end_time": "YYYY-MM-DDTHH:MM:00Z",
      "location": "Nome del luogo, Indirizzo/Zona",
      "priority": 1,
      "cost": 10.50,
      "currency": "EUR",
      "notes": "Breve nota o consiglio",
      "status": "planned"
    }
  ]
}
```

Assicurati che il JSON sia valido e che tutte le date e gli orari siano nel formato corretto. NON includere alcun testo esplicativo prima o dopo il JSON."""


def format_italian_date(value: date) -> str:
    """E.g. ``sabato 1 giugno 2024``."""
    return f"{_WEEKDAYS[value.weekday()]} {value.day} {_MONTHS[value.month - 1]} {value.year}"


def describe_pace(pace: str) -> str:
    return PACE_DESCRIPTIONS.get(pace, "moderato")


def describe_trip_type(trip_type: str) -> str:
    return TRIP_TYPE_GUIDANCE.get(trip_type, TRIP_TYPE_GUIDANCE["general"])


def describe_preferred_times(preferred_times: Sequence[str]) -> str:
    if not preferred_times:
        return ""
    labels = ", ".join(PREFERRED_TIME_LABELS.get(t, t) for t in preferred_times)
    return f"con preferenza per attività durante: {labels}"


def _section(title: str, lines: Sequence[str]) -> str:
    if not lines:
        return ""
    items = "\n".join(f"- {line}" for line in lines)
    return f"\n{title} (MOLTO IMPORTANTE):\n{items}\n"


def _activity_count_instructions(constraints: ConstraintSet) -> str:
    if constraints.is_limited_request:
        count = constraints.requested_activity_count
        noun = "attività" if count == 1 else "attività in totale"
        return (
            f"Genera ESATTAMENTE {count} {noun}, non di più: l'utente ha chiesto "
            "un numero limitato di attività e non un programma completo della giornata."
        )
    return "Per ogni giorno, crea 3-5 attività."


def build_prompt(
    trip_data: TripData,
    preferences: TripPreferences,
    constraints: ConstraintSet,
    days: Sequence[TripDay],
) -> str:
    """
    Render the full instruction block for one generation request.

    Deterministic for identical inputs. User-supplied strings are sanitised
    before being embedded.
    """
    main_destination = sanitize(trip_data.destination, 200) or DEFAULT_DESTINATION
    effective_destination = sanitize(constraints.specific_destination, 200) or main_destination
    interests = ", ".join(sanitize(i, 100) for i in preferences.interests) or "varie"
    additional = sanitize(preferences.additional_preferences)
    trip_type = sanitize(preferences.trip_type, 50) or "general"
    pace = f"{describe_pace(preferences.pace)} {describe_preferred_times(preferences.preferred_times)}".rstrip()

    other_destinations = ""
    if constraints.destinations_to_visit:
        other_destinations = "- Altre destinazioni menzionate: " + ", ".join(
            constraints.destinations_to_visit
        )

    day_lines = "\n".join(
        f"- {format_italian_date(day.day_date)} (ID: {day.id})" for day in days
    )

    sections = "".join(
        [
            _section("VINCOLI TEMPORALI", constraints.describe_time_constraints()),
            _section("DESTINAZIONI DA VISITARE", list(constraints.destinations_to_visit)),
            _section(
                "RICHIESTE SPECIFICHE DELL'UTENTE",
                [sanitize(r, 300) for r in constraints.specific_requests],
            ),
        ]
    )

    return f"""
Sei un esperto pianificatore di viaggi italiano con conoscenza approfondita delle destinazioni turistiche. Genera un itinerario dettagliato e personalizzato per un viaggio a {effective_destination}.

INFORMAZIONI SUL VIAGGIO:
- Destinazione principale: {main_destination}
- Destinazione specifica per queste attività: {effective_destination}
- Tipo di viaggio: {trip_type}
- Ritmo del viaggio: {pace}
- Interessi dell'utente: {interests}
- Preferenze aggiuntive: {additional}
{other_destinations}

GIORNI DEL VIAGGIO:
{day_lines}
{sections}
TEMA DEL VIAGGIO:
{describe_trip_type(preferences.trip_type)}

COMPITO:
Genera attività realistiche, specifiche e dettagliate per i giorni sopra indicati, tenendo conto degli interessi e delle preferenze dell'utente.
{_activity_count_instructions(constraints)}

Ogni attività deve includere:
1. Nome dell'attività (breve, specifico e descrittivo)
2. Tipo (scegli tra: {", ".join(ACTIVITY_TYPES)})
3. Orario di inizio e fine (orari realistici)
4. Luogo specifico (nome REALE del luogo e indirizzo completo per geocodifica)
5. Costo stimato (se applicabile, in EUR)
6. Breve nota o consiglio (suggerimenti, cosa aspettarsi, dettagli storici)

LINEE GUIDA IMPORTANTI:
- RISPETTA RIGOROSAMENTE i vincoli temporali specificati dall'utente
- RISPETTA RIGOROSAMENTE la destinazione specifica richiesta dall'utente
- Assicurati che le attività siano realistiche e fattibili nel tempo indicato
- Considera i tempi di spostamento tra le attività (includi pause adeguate)
- Includi SOLO attività specifiche per la destinazione con nomi REALI di luoghi
- Fornisci indirizzi COMPLETI e PRECISI per ogni luogo
- Assegna priorità 1 (alta), 2 (media) o 3 (bassa) a ciascuna attività
- Considera l'ora dei pasti (colazione, pranzo, cena) quando pianifichi le attività
- Suggerisci ristoranti o luoghi specifici per i pasti, non generici

{OUTPUT_FORMAT}
"""
