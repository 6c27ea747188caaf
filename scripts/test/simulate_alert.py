"""Send test alerts / heartbeats to the backend."""

import argparse
import requests

BACKEND_URL = "http://192.168.1.50:8000/api/v1"

ALERT_TEMPLATES = {
    "unauthorized": {
        "alert_type": "Unauthorized Face Detected",
        "severity": "high",
        "details": "Unknown face detected - security alert",
        "source_device": "Camera - Face Recognition",
        "detected_person": "Unknown Person",
        "confidence_score": 72,
    },
    "authorized": {
        "alert_type": "Authorized Access",
        "severity": "low",
        "details": "Access granted to Test User",
        "source_device": "Camera - Face Recognition",
        "detected_person": "Test User",
        "confidence_score": 91,
    },
    "test": {
        "alert_type": "Test Alert",
        "severity": "medium",
        "details": "Test alert from simulator",
        "source_device": "Manual Test",
    },
}


def simulate_alert(kind, backend):
    resp = requests.post(f"{backend}/alerts", json=ALERT_TEMPLATES[kind], timeout=10)
    body = resp.json()
    print(f"✅ {kind} alert → HTTP {resp.status_code}: #{body.get('alert', {}).get('id')}")
    delivery = body.get("delivery")
    if delivery is None:
        print("⚠️  Not broadcast (device registry unavailable)")
        return
    print(f"📡 Delivered to {delivery['succeeded']}/{delivery['attempted']} receivers")
    for failure in delivery["failures"]:
        print(f"   ❌ {failure['device_name']} ({failure['address']}): {failure['reason']}")


def simulate_heartbeat(name, ip, port, device_type, backend):
    payload = {"device_name": name, "ip_address": ip, "device_type": device_type}
    if port:
        payload["port"] = port
    resp = requests.post(f"{backend}/receivers/heartbeat", json=payload, timeout=10)
    print(f"💓 {name} ({device_type}) → HTTP {resp.status_code}: {resp.json()}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate alerts and device heartbeats")
    parser.add_argument("--alert", default="unauthorized", choices=list(ALERT_TEMPLATES.keys()) + ["none"])
    parser.add_argument("--heartbeat", metavar="DEVICE_NAME", help="register a device before alerting")
    parser.add_argument("--ip", default="192.168.1.100")
    parser.add_argument("--port", type=int)
    parser.add_argument("--type", default="esp32", choices=["esp32", "receiver"])
    parser.add_argument("--backend", default=BACKEND_URL)
    args = parser.parse_args()

    if args.heartbeat:
        simulate_heartbeat(args.heartbeat, args.ip, args.port, args.type, args.backend)
    if args.alert != "none":
        simulate_alert(args.alert, args.backend)
