from pydantic import BaseModel

SIP_SCHEME = "sip:"


def normalize_address(address: str) -> str:
    """Trim and ensure the canonical ``sip:`` scheme prefix."""
    address = address.strip()
    if address.lower().startswith(SIP_SCHEME):
        return SIP_SCHEME + address[len(SIP_SCHEME):]
    return SIP_SCHEME + address


class Subject(BaseModel):
    address: str
    display_name: str = ""
    enabled: bool = True

    @classmethod
    def from_api(cls, row: dict) -> "Subject":
        address = row.get("sipAddress", row.get("address", ""))
        return cls(
            address=normalize_address(address) if address else "",
            display_name=row.get("displayName") or "",
            enabled=bool(row.get("enabled", True)),
        )

    @property
    def sort_key(self) -> str:
        return self.address.lower()
