# ------------------------------------------------------------------------------
#  BikeReplay
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of BikeReplay, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""Exceptions raised at the data ingestion boundary."""


class DataFetchError(RuntimeError):
    """A manifest or chunk could not be fetched."""

    def __init__(self, name: str, reason: str = "") -> None:
        self.name = name
        self.reason = reason
        message = f"Failed to fetch '{name}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class MalformedChunkError(ValueError):
    """A manifest or chunk payload does not have the expected shape."""
