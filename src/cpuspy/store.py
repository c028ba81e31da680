"""JSON persistence for a captured baseline."""

import json
import logging
from pathlib import Path

log = logging.getLogger(__name__)


class BaselineStore:
    """
    Load and save a frequency -> ticks baseline as a JSON object.

    JSON keys are strings, so frequencies are written as decimal strings
    and converted back on load.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        """Location of the baseline file."""
        return self._path

    def load(self) -> dict[int, int]:
        """
        Read the stored baseline.

        Returns:
            The baseline, or an empty dict if the file is missing or
            does not hold a valid baseline.
        """
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            log.warning("Ignoring unreadable baseline file %s: %s", self._path, exc)
            return {}

        if not isinstance(raw, dict):
            log.warning("Ignoring baseline file %s: not a JSON object", self._path)
            return {}

        baseline: dict[int, int] = {}
        for key, value in raw.items():
            valid_value = isinstance(value, int) and not isinstance(value, bool) and value >= 0
            if not (key.isascii() and key.isdigit()) or not valid_value:
                log.warning("Ignoring baseline file %s: bad entry %r", self._path, key)
                return {}
            baseline[int(key)] = value
        return baseline

    def save(self, baseline: dict[int, int]) -> None:
        """Write the baseline, replacing any previous file."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {str(freq): ticks for freq, ticks in sorted(baseline.items(), reverse=True)}
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        tmp.replace(self._path)
        log.debug("Saved baseline with %d entries to %s", len(payload), self._path)

    def clear(self) -> None:
        """Remove the baseline file if present."""
        self._path.unlink(missing_ok=True)
