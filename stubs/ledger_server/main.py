from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
from pathlib import Path
import json
import os

app = FastAPI(title="Stub Points Ledger", version="1.0.0")
# Support both local development and Docker
DATA_FILE = Path(os.environ.get("LEDGER_STUB_DATA", Path(__file__).resolve().parent / "ledger.json"))

state = {"families": {}, "balances": {}, "debits": {}}


class InterestDebit(BaseModel):
    amount: int
    timestamp: str
    idempotency_key: str


def load(data: dict) -> None:
    """Replace ledger contents: {"families": {id: [{child_id, name}]}, "balances": {child_id: int}}"""
    state["families"] = {fid: list(children) for fid, children in data.get("families", {}).items()}
    state["balances"] = {cid: int(balance) for cid, balance in data.get("balances", {}).items()}
    state["debits"] = {}


if DATA_FILE.exists():
    load(json.loads(DATA_FILE.read_text()))


@app.get("/health")
def health(): return {"status": "ok"}


@app.get("/families/{family_id}/children")
def get_children(family_id: str):
    if family_id not in state["families"]:
        raise HTTPException(status_code=404, detail="family not found")
    return {"children": state["families"][family_id]}


@app.get("/children/{child_id}/balance")
def get_balance(child_id: str):
    if child_id not in state["balances"]:
        raise HTTPException(status_code=404, detail="child not found")
    return {"child_id": child_id, "balance": state["balances"][child_id]}


@app.post("/children/{child_id}/interest-debits")
def post_interest_debit(child_id: str, debit: InterestDebit):
    if child_id not in state["balances"]:
        raise HTTPException(status_code=404, detail="child not found")
    # Replayed key: acknowledge without charging again
    if debit.idempotency_key not in state["debits"]:
        state["debits"][debit.idempotency_key] = debit.amount
        state["balances"][child_id] -= debit.amount
    return {"child_id": child_id, "balance": state["balances"][child_id]}
