"""Activity generation: request validation, prompting and reconciliation."""

import logging
from typing import Iterable, Optional

from config import Settings
from models import Activity, GenerateActivitiesRequest
from utils.security import validate_security
from .errors import InvalidRequestError, SecurityRejection
from .model_client import GeminiClient
from .preferences import PreferenceParser
from .prompt import build_prompt
from .reconciler import RepairPolicy, parse_activities_from_response

logger = logging.getLogger(__name__)


class ActivityGenerator:
    """Generates reconciled activities for the days of one trip."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[GeminiClient] = None,
        policy: Optional[RepairPolicy] = None,
    ):
        self.settings = settings
        self.client = client or GeminiClient(settings)
        self.policy = policy or RepairPolicy.from_settings(settings)

    async def generate(self, request: GenerateActivitiesRequest) -> list[Activity]:
        """
        Run the whole pipeline for one request.

        Args:
            request: The parsed request body

        Returns:
            Activities sorted by start time

        Raises:
            InvalidRequestError: tripId or days missing
            SecurityRejection: Unsafe content in a free-text field
            ConfigurationError, UpstreamError, ParseError: Generation failed
        """
        if not request.trip_id or not request.days:
            raise InvalidRequestError("Dati mancanti: tripId e days sono richiesti")

        self._screen(
            [
                request.preferences.additional_preferences,
                request.trip_data.destination,
                *request.preferences.interests,
                *request.trip_data.destinations,
            ]
        )

        logger.info(f"Generating activities for trip {request.trip_id} ({len(request.days)} days)")

        parser = PreferenceParser(request.trip_data.destination, request.trip_data.destinations)
        constraints = parser.parse(request.preferences.additional_preferences)
        prompt = build_prompt(request.trip_data, request.preferences, constraints, request.days)

        response = await self.client.generate(prompt)
        activities = parse_activities_from_response(
            response, request.days, constraints, self.policy
        )

        logger.info(f"Generated {len(activities)} activities for trip {request.trip_id}")
        return activities

    @staticmethod
    def _screen(texts: Iterable[Optional[str]]) -> None:
        issues: list[str] = []
        for text in texts:
            if not text:
                continue
            check = validate_security(text)
            issues.extend(i for i in check.issues if i not in issues)

        if issues:
            logger.warning(f"Rejected unsafe request content: {issues}")
            raise SecurityRejection(
                "Message contains potentially unsafe content", "; ".join(issues)
            )
