from __future__ import annotations

from dataclasses import dataclass

from .state_schema import OrderDraft, Outcome, Transition, locked_transition


def normalize_code(code: object) -> str:
    if code is None:
        return ""
    return str(code).strip().upper()


@dataclass(frozen=True, slots=True)
class CustomerRecord:
    code: str
    organization: str = ""
    principal_investigator: str = ""
    contact_person: str = ""
    contact_phone: str = ""
    email: str = ""
    address: str = ""
    invoice_title: str = ""
    tax_id: str = ""

    def profile_fields(self) -> dict[str, str]:
        return {
            "organization": self.organization,
            "principal_investigator": self.principal_investigator,
            "contact_person": self.contact_person,
            "contact_phone": self.contact_phone,
            "email": self.email,
            "address": self.address,
            "invoice_title": self.invoice_title,
            "tax_id": self.tax_id,
        }


class SalesDirectory:
    """Sales code -> sales person name."""

    def __init__(self, entries: dict[str, str]):
        self._entries = {normalize_code(k): str(v).strip() for k, v in entries.items() if normalize_code(k)}

    def lookup(self, code: object) -> str | None:
        return self._entries.get(normalize_code(code))

    def __contains__(self, code: object) -> bool:
        return normalize_code(code) in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class CustomerDirectory:
    def __init__(self, records: list[CustomerRecord]):
        self._records = {normalize_code(r.code): r for r in records if normalize_code(r.code)}

    def lookup(self, code: object) -> CustomerRecord | None:
        return self._records.get(normalize_code(code))

    def __len__(self) -> int:
        return len(self._records)


def set_sales_code(draft: OrderDraft, sales: SalesDirectory, code: object) -> Transition:
    """Store the upper-cased code and the resolved sales person (blank when unknown)."""
    if draft.locked:
        return locked_transition(draft)

    normalized = normalize_code(code)
    person = sales.lookup(normalized) or ""
    new = draft.clone()
    new.log_update("sales_code", draft.sales_code, normalized, "set_sales_code")
    new.sales_code = normalized
    if person != draft.sales_person:
        new.log_update("sales_person", draft.sales_person, person, "sales_directory_lookup")
    new.sales_person = person

    if not person:
        return Transition(draft=new, outcome=Outcome(accepted=False, reason="unknown_sales_code"))
    return Transition(draft=new, outcome=Outcome(accepted=True, messages=(f"sales_person:{person}",)))


PROFILE_FIELDS = (
    "organization",
    "principal_investigator",
    "contact_person",
    "contact_phone",
    "email",
    "address",
    "invoice_title",
    "tax_id",
    "species",
    "notes",
)

PROFILE_FLAGS = ("is_urgent", "sample_return")


def update_profile(draft: OrderDraft, **values) -> Transition:
    if draft.locked:
        return locked_transition(draft)

    unknown = sorted(set(values).difference(PROFILE_FIELDS + PROFILE_FLAGS))
    if unknown:
        return Transition(draft=draft, outcome=Outcome(accepted=False, reason=f"unknown_fields:{','.join(unknown)}"))

    new = draft.clone()
    for name, value in values.items():
        value = bool(value) if name in PROFILE_FLAGS else ("" if value is None else str(value).strip())
        old = getattr(new, name)
        if old != value:
            setattr(new, name, value)
            new.log_update(name, old, value, "update_profile")
    return Transition(draft=new, outcome=Outcome(accepted=True))


def apply_customer_code(draft: OrderDraft, customers: CustomerDirectory, code: object) -> Transition:
    """Pre-fill profile fields from the customer directory. Blank directory values do not overwrite."""
    if draft.locked:
        return locked_transition(draft)

    normalized = normalize_code(code)
    record = customers.lookup(normalized)
    if record is None:
        return Transition(draft=draft, outcome=Outcome(accepted=False, reason="unknown_customer_code"))

    new = draft.clone()
    new.log_update("customer_code", draft.customer_code, normalized, "apply_customer_code")
    new.customer_code = normalized
    filled = []
    for name, value in record.profile_fields().items():
        if not value:
            continue
        old = getattr(new, name)
        if old != value:
            setattr(new, name, value)
            new.log_update(name, old, value, f"customer:{normalized}")
            filled.append(name)
    return Transition(draft=new, outcome=Outcome(accepted=True, messages=tuple(f"prefilled:{n}" for n in filled)))
