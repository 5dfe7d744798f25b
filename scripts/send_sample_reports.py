import random
import socket
import sys
import time

from dnids.core.models import BYTES, PACKETS, Report
from dnids.core.protocol import DESMAN_PORT, compose_report


def main():
    host = sys.argv[1] if len(sys.argv) > 1 else "127.0.0.1"
    count = int(sys.argv[2]) if len(sys.argv) > 2 else 20

    sock = socket.create_connection((host, DESMAN_PORT))
    stream = sock.makefile("rwb")

    print(stream.readline().decode().strip())  # UID <n>
    print(stream.readline().decode().strip())  # start

    for seq in range(1, count + 1):
        packets = random.choice([10, 12, 15, 60])
        alerts = frozenset({PACKETS, BYTES}) if packets == 60 else frozenset()
        report = Report(
            seq=seq,
            packets=packets,
            bytes=packets * 1200,
            flows=random.choice([1, 2, 3]),
            alerts=alerts,
            destination="10.0.0.2" if alerts else None,
        )
        stream.write((compose_report(report) + "\n").encode("ascii"))
        stream.flush()
        time.sleep(1.0)

    stream.close()
    sock.close()


if __name__ == "__main__":
    main()
