"""
Venue factory for creating venue clients dynamically.
"""

from typing import Any, Dict, Type

from venue_clients.base_client import BaseVenueClient


class VenueFactory:
    """Factory class for creating venue clients."""

    _registered_venues = {
        'simulated': 'venue_clients.simulated.SimulatedVenue',
    }

    @classmethod
    def create_venue(cls, venue_name: str, config: Dict[str, Any]) -> BaseVenueClient:
        """Create a venue client instance.

        Args:
            venue_name: Name of the venue (e.g., 'simulated')
            config: The ``venue`` section of the run configuration

        Returns:
            Venue client instance

        Raises:
            ValueError: If the venue is not supported
        """
        venue_name = venue_name.lower()

        if venue_name not in cls._registered_venues:
            available_venues = ', '.join(cls._registered_venues.keys())
            raise ValueError(f"Unsupported venue: {venue_name}. Available venues: {available_venues}")

        # Dynamically import the venue class only when needed
        venue_class = cls._import_venue_class(cls._registered_venues[venue_name])
        return venue_class.from_config(config)

    @classmethod
    def _import_venue_class(cls, class_path: str) -> Type[BaseVenueClient]:
        """Dynamically import a venue class.

        Raises:
            ImportError: If the class cannot be imported
            ValueError: If the class does not inherit from BaseVenueClient
        """
        try:
            module_path, class_name = class_path.rsplit('.', 1)
            module = __import__(module_path, fromlist=[class_name])
            venue_class = getattr(module, class_name)

            if not issubclass(venue_class, BaseVenueClient):
                raise ValueError(f"Venue class {class_name} must inherit from BaseVenueClient")

            return venue_class
        except (ImportError, AttributeError) as e:
            raise ImportError(f"Failed to import venue class {class_path}: {e}")

    @classmethod
    def get_supported_venues(cls) -> list:
        """Get list of supported venue names."""
        return list(cls._registered_venues.keys())
