"""Internal constants shared across the library."""

from datetime import timedelta

# ------------------------------------------------------------------
# External sample metadata keys
# ------------------------------------------------------------------

METADATA_EXTERNAL_UUID = "HKMetadataKeyExternalUUID"
METADATA_SYNC_IDENTIFIER = "HKMetadataKeySyncIdentifier"
METADATA_SYNC_VERSION = "HKMetadataKeySyncVersion"
# Provenance marker on every sample this app writes.
METADATA_APP_PROVENANCE = "fromFreeAPSX"

SYNC_VERSION = 1
GLUCOSE_UNIT = "mg/dL"

# ------------------------------------------------------------------
# Windows
# ------------------------------------------------------------------

TRAILING_WINDOW = timedelta(days=1)
LEDGER_RETENTION = timedelta(days=1)

LEDGER_FILENAME = "downloaded_glucose.json"
USER_AGENT = "glucosync/1"
