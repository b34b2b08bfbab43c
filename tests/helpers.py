SENT_SMS = (
    "QCD7XYZ12 Confirmed. Ksh1,500.00 sent to JOHN KAMAU on 3/1/24 at 2:45 PM. "
    "New M-PESA balance is Ksh8,500.00. Transaction cost, Ksh0.00."
)
RECEIVED_SMS = (
    "QCE1ABC34 Confirmed.You have received Ksh2,000.00 from MARY WANJIKU 254712345678 "
    "on 5/1/24 at 9:15 AM New M-PESA balance is Ksh10,500.00."
)
PAYMENT_SMS = (
    "QCF2DEF56 Confirmed. Ksh250.00 paid to NAIVAS SUPERMARKET. on 6/1/24 at 6:30 PM. "
    "New M-PESA balance is Ksh10,250.00."
)
OTP_SMS = "Your M-PESA verification code is 482913. Do not share it with anyone."


def sms(native_id, body, timestamp, address="MPESA"):
    return {"native_id": native_id, "body": body, "timestamp": timestamp, "address": address}


class FakeSource:
    """In-memory inbox honouring min_timestamp like the real sources."""

    def __init__(self, messages=None, permitted=True, error=None):
        self.messages = list(messages or [])
        self.permitted = permitted
        self.error = error
        self.calls = []

    async def check_permission(self):
        return self.permitted

    async def list_messages(self, inbox, min_timestamp=None):
        self.calls.append((inbox, min_timestamp))
        if self.error:
            raise self.error
        return [
            m for m in self.messages
            if min_timestamp is None or m.get("timestamp", 0) >= min_timestamp
        ]
