import os
from dotenv import load_dotenv

# always load from local file
load_dotenv(".env")

# -------- env / config --------
WSS_URL              = os.getenv("WSS_URL", "wss://ws.hekla.taiko.xyz")
CONTRACT_ADDRESS     = os.getenv("CONTRACT_ADDRESS")
ABI_PATH             = os.getenv("ABI_PATH")  # None -> bundled recycle_chain_abi.json
DB_PATH              = os.getenv("DB_PATH", "recycle_index.sqlite")
TOXIC_RETRY_ATTEMPTS = int(os.getenv("TOXIC_RETRY_ATTEMPTS", "5"))
TOXIC_RETRY_DELAY    = float(os.getenv("TOXIC_RETRY_DELAY", "1.0"))
RESYNC_ON_START      = os.getenv("RESYNC_ON_START", "0").lower() in ("1", "true", "yes")
RESYNC_FROM_BLOCK    = int(os.getenv("RESYNC_FROM_BLOCK", "0"))
LOG_LEVEL            = os.getenv("LOG_LEVEL", "INFO").upper()

# --- contract events, in resync order ---
MANUFACTURER_REGISTERED      = "ManufacturerRegistered"
PRODUCT_CREATED              = "ProductCreated"
PRODUCT_ITEMS_ADDED          = "ProductItemsAdded"
PRODUCT_ITEMS_STATUS_CHANGED = "ProductItemsStatusChanged"
TOXIC_ITEM_CREATED           = "ToxicItemCreated"

EVENT_KINDS = (
    MANUFACTURER_REGISTERED,
    PRODUCT_CREATED,
    PRODUCT_ITEMS_ADDED,
    PRODUCT_ITEMS_STATUS_CHANGED,
    TOXIC_ITEM_CREATED,
)


def require_contract_address() -> str:
    if not CONTRACT_ADDRESS:
        raise SystemExit("Missing CONTRACT_ADDRESS in .env")
    return CONTRACT_ADDRESS
