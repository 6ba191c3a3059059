# ------------------------------------------------------------------------------
#  BikeReplay
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of BikeReplay, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import json, copy
from dataclasses import dataclass
from typing import Optional
from waypoints import MERGE_ORDERS

DEFAULT_REPLAY = {
    "data_dir": "data",
    "manifest": "data.json",
    "speed": 100,
    "step_size": 15,
    "ticks": None,
    "lookahead_steps": 10,
    "draw_lines": True,
    "draw_markers": True,
    "merge_order": "arrival",
    "prune_lag": 0,
    "renderer": "headless",
    "timer": "manual",
    "fetcher": "file",
}

@dataclass
class ReplaySettings:
    """Validated `replay` section."""
    data_dir: str = "data"
    manifest: str = "data.json"
    speed: int = 100
    step_size: int = 15
    ticks_override: Optional[int] = None
    lookahead_steps: int = 10
    draw_lines: bool = True
    draw_markers: bool = True
    merge_order: str = "arrival"
    prune_lag: int = 0
    renderer: str = "headless"
    timer: str = "manual"
    fetcher: str = "file"

    @property
    def ticks(self) -> int:
        """Interpolation sub-steps per move."""
        if self.ticks_override:
            return self.ticks_override
        return max(1, round(self.speed / 2))

    @property
    def lookahead(self) -> float:
        """Virtual seconds ahead of the clock at which the next chunk is requested."""
        return self.lookahead_steps * self.step_size * (1000 / self.speed)

    def as_dict(self) -> dict:
        """Return the settings as plain values (fed to plugin factories)."""
        data = dict(self.__dict__)
        data["ticks"] = data.pop("ticks_override")
        return data

class Config:
    """Config."""
    def __init__(self, config_path: str = "", new_data: Optional[dict] = None):
        """Initialize the instance."""
        if config_path:
            self.config_path = config_path
            self.data = self.load_config()
        elif new_data is not None:
            self.config_path = None
            self.data = new_data
        else:
            raise ValueError("Either config_path or new_data must be provided")
        if not isinstance(self.data, dict):
            raise ValueError("The configuration root must be a JSON object")

    def load_config(self):
        """Load config."""
        with open(self.config_path, 'r') as file:
            return json.load(file)

    @staticmethod
    def _check_int(section: dict, field: str, minimum: int, allow_none: bool = False):
        """Check that `field` is an integer >= minimum."""
        value = section[field]
        if value is None and allow_none:
            return None
        if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
            raise ValueError(f"Field '{field}' must be an integer >= {minimum} in replay")
        return value

    @staticmethod
    def _check_bool(section: dict, field: str) -> bool:
        """Check that `field` is a boolean."""
        value = section[field]
        if not isinstance(value, bool):
            raise ValueError(f"Field '{field}' must be true or false in replay")
        return value

    @staticmethod
    def _check_str(section: dict, field: str) -> str:
        """Check that `field` is a non-empty string."""
        value = section[field]
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"Field '{field}' must be a non-empty string in replay")
        return value.strip()

    def parse_replay(self) -> ReplaySettings:
        """Parse and validate the replay section."""
        raw = self.data.get('replay', {})
        if not isinstance(raw, dict):
            raise ValueError("The 'replay' field must be an object")
        unknown = set(raw) - set(DEFAULT_REPLAY) - {"plugins"}
        if unknown:
            raise ValueError(f"Unknown fields in replay: {sorted(unknown)}")
        section = copy.deepcopy(DEFAULT_REPLAY)
        section.update(raw)
        merge_order = self._check_str(section, "merge_order").lower()
        if merge_order not in MERGE_ORDERS:
            raise ValueError(f"Field 'merge_order' must be one of {MERGE_ORDERS} in replay")
        return ReplaySettings(
            data_dir=self._check_str(section, "data_dir"),
            manifest=self._check_str(section, "manifest"),
            speed=self._check_int(section, "speed", 1),
            step_size=self._check_int(section, "step_size", 1),
            ticks_override=self._check_int(section, "ticks", 1, allow_none=True),
            lookahead_steps=self._check_int(section, "lookahead_steps", 0),
            draw_lines=self._check_bool(section, "draw_lines"),
            draw_markers=self._check_bool(section, "draw_markers"),
            merge_order=merge_order,
            prune_lag=self._check_int(section, "prune_lag", 0),
            renderer=self._check_str(section, "renderer"),
            timer=self._check_str(section, "timer"),
            fetcher=self._check_str(section, "fetcher"),
        )

    @property
    def replay(self) -> dict:
        """Return the raw replay configuration."""
        return self.data.get('replay', {})

    @property
    def gui(self) -> dict:
        """Return the GUI configuration."""
        return self.data.get('gui', {})

    @property
    def logging(self) -> dict:
        """Return the logging configuration."""
        return self.data.get('logging', {})
