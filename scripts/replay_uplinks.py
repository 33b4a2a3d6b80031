"""Generate uplinks for one library profile offline and POST them to a webhook.

    WEBHOOK_URL=http://localhost:8000/ttn/webhook PROFILE_ID=milesight-em300-th \
        python scripts/replay_uplinks.py
"""
import os, sys, time
from pathlib import Path

import requests

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "backend"))

from emulator.library import default_library  # noqa: E402
from emulator.schemas import EmulatedDevice, GatewayConfig  # noqa: E402
from emulator.simulation.pipeline import emit_uplink  # noqa: E402
from emulator.simulation.state_store import DeviceStateStore  # noqa: E402

WEBHOOK_URL = os.getenv("WEBHOOK_URL", "http://localhost:8000/ttn/webhook")
APPLICATION_ID = os.getenv("APPLICATION_ID", "lorawan-emulator")
PROFILE_ID = os.getenv("PROFILE_ID", "milesight-em300-th")
DEV_EUI = os.getenv("DEV_EUI", "A84041000181C2D1")
SCENARIO = os.getenv("SCENARIO") or None
COUNT = int(os.getenv("COUNT", "10"))
DELAY = float(os.getenv("DELAY", "1.0"))


def main():
    profile = default_library().get_device(PROFILE_ID)
    device = EmulatedDevice(id=f"replay-{DEV_EUI.lower()}", dev_eui=DEV_EUI, profile_id=profile.id)
    gateway = GatewayConfig(id="replay-gw", eui="0000000000000001")
    store = DeviceStateStore()

    for _ in range(COUNT):
        envelope = emit_uplink(
            device,
            profile,
            store,
            gateways=[gateway],
            application_id=APPLICATION_ID,
            scenario_id=SCENARIO,
        )
        r = requests.post(
            WEBHOOK_URL,
            json=envelope.model_dump(mode="json"),
            headers={"X-Application-Id": APPLICATION_ID},
            timeout=10,
        )
        print(r.status_code, f"f_cnt={envelope.uplink_message.f_cnt}", envelope.uplink_message.decoded_payload)
        time.sleep(DELAY)


if __name__ == "__main__":
    main()
