"""In-memory stand-ins for the ledger contract, web3 and a browser wallet."""
import itertools
import threading
import time
from typing import Any, Dict, List, Optional, Set

from web3.exceptions import ContractLogicError

from anoncheckin.core.config import Settings
from anoncheckin.core.errors import WalletRequestError
from anoncheckin.services.wallet import EventEmitter

CONTRACT = "0x5fbdb2315678afecb367f032d93f642f64180aa3"
ORGANIZER = "0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266"
ATTENDEE = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"
ZERO = "0x0000000000000000000000000000000000000000"
START = 1_700_000_000


def make_settings(**overrides) -> Settings:
    """Settings isolated from .env and any deployment file on disk."""
    values = {
        "DEPLOYMENT_FILE": "/nonexistent/config.json",
        "CONTRACT_ADDRESS": CONTRACT,
        "READ_RETRY_BASE_DELAY": 0.5,
        "REGISTRY_MAX_WORKERS": 4,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def revert(reason: str) -> ContractLogicError:
    return ContractLogicError(f"execution reverted: {reason}")


class FakeLedger:
    """
    Behaves like the AnonymousCheckIn contract.

    Failure injection:
        detail_failures: meeting id -> number of times getMeetingDetails fails
            (-1 for always)
        next_id_error / active_error / participant_error: raised by those reads
        emit_events: include MeetingCreated in receipts
        revert_on_chain: mine transactions with status 0
    """

    def __init__(self, now: int = START):
        self.now = now
        self.next_id = 1
        self.meetings: Dict[int, Dict[str, Any]] = {}
        self.participants: Dict[int, Set[int]] = {}
        self.active: List[int] = []
        self.detail_failures: Dict[int, int] = {}
        self.detail_delays: Dict[int, float] = {}
        self.next_id_error: Optional[Exception] = None
        self.active_error: Optional[Exception] = None
        self.participant_error: Optional[Exception] = None
        self.emit_events = True
        self.revert_on_chain = False
        self.detail_calls: Dict[int, int] = {}
        self._lock = threading.Lock()

    # -- views ---------------------------------------------------------

    def nextMeetingId(self) -> int:
        if self.next_id_error is not None:
            raise self.next_id_error
        return self.next_id

    def getActiveMeetings(self) -> List[int]:
        if self.active_error is not None:
            raise self.active_error
        return list(self.active)

    def getMeetingDetails(self, meeting_id: int):
        with self._lock:
            self.detail_calls[meeting_id] = self.detail_calls.get(meeting_id, 0) + 1
            remaining = self.detail_failures.get(meeting_id, 0)
            if remaining:
                self.detail_failures[meeting_id] = remaining - 1 if remaining > 0 else remaining
                raise ConnectionError(f"node dropped getMeetingDetails({meeting_id})")
        if meeting_id in self.detail_delays:
            time.sleep(self.detail_delays[meeting_id])
        m = self.meetings.get(meeting_id)
        if m is None:
            # Solidity returns a zeroed struct for unknown keys
            return (ZERO, "", 0, 0, 0, 0, 0)
        return (
            m["creator"],
            m["title"],
            m["startTime"],
            m["endTime"],
            m["maxParticipants"],
            m["participantCount"],
            m["status"],
        )

    def isParticipant(self, meeting_id: int, participant_id: int) -> bool:
        if self.participant_error is not None:
            raise self.participant_error
        return participant_id in self.participants.get(meeting_id, set())

    # -- transactions --------------------------------------------------

    def createMeeting(self, sender: str, title: str, max_participants: int) -> Dict[str, Any]:
        if not title:
            raise revert("Title required")
        if max_participants <= 0:
            raise revert("Invalid max participants")
        meeting_id = self.next_id
        self.next_id += 1
        self.meetings[meeting_id] = {
            "creator": sender,
            "title": title,
            "startTime": self.now,
            "endTime": 0,
            "maxParticipants": max_participants,
            "participantCount": 0,
            "status": 0,
        }
        self.participants[meeting_id] = set()
        self.active.append(meeting_id)
        return {"MeetingCreated": [{"args": {"meetingId": meeting_id, "creator": sender, "title": title}}]}

    def checkIn(self, sender: str, meeting_id: int, participant_id: int) -> Dict[str, Any]:
        m = self._existing(meeting_id)
        if m["status"] != 0:
            raise revert("Meeting is not active")
        if participant_id in self.participants[meeting_id]:
            raise revert("Already checked in")
        if m["participantCount"] >= m["maxParticipants"]:
            raise revert("Meeting is full")
        self.participants[meeting_id].add(participant_id)
        m["participantCount"] += 1
        return {}

    def endMeeting(self, sender: str, meeting_id: int) -> Dict[str, Any]:
        m = self._existing(meeting_id)
        if m["creator"].lower() != sender.lower():
            raise revert("Only creator can end meeting")
        if m["status"] != 0:
            raise revert("Meeting already ended")
        m["status"] = 1
        m["endTime"] = self.now
        self.active.remove(meeting_id)
        return {}

    def _existing(self, meeting_id: int) -> Dict[str, Any]:
        if meeting_id not in self.meetings:
            raise revert("Meeting does not exist")
        return self.meetings[meeting_id]

    # -- helpers for tests ----------------------------------------------

    def add_meeting(self, creator: str = ORGANIZER, title: str = "Standup", max_participants: int = 5,
                    participants: int = 0, ended: bool = False, duration: int = 600) -> int:
        self.createMeeting(creator, title, max_participants)
        meeting_id = self.next_id - 1
        for pid in range(1000, 1000 + participants):
            self.checkIn(creator, meeting_id, pid)
        if ended:
            saved = self.now
            self.now = self.meetings[meeting_id]["startTime"] + duration
            self.endMeeting(creator, meeting_id)
            self.now = saved
        return meeting_id


class FakeFunctionCall:
    def __init__(self, eth: "FakeEth", name: str, args: tuple):
        self.eth = eth
        self.name = name
        self.args = args

    def call(self, transaction=None, block_identifier=None):
        return getattr(self.eth.ledger, self.name)(*self.args)

    def transact(self, transaction: Dict[str, Any]):
        return self.eth.execute(self.name, self.args, transaction["from"])


class FakeFunctions:
    def __init__(self, eth: "FakeEth"):
        self._eth = eth

    def __getattr__(self, name: str):
        return lambda *args: FakeFunctionCall(self._eth, name, args)


class FakeEvent:
    def __init__(self, name: str):
        self.name = name

    def process_receipt(self, receipt, errors=None):
        return list(receipt.get("_events", {}).get(self.name, []))


class FakeEvents:
    def __getattr__(self, name: str):
        return lambda: FakeEvent(name)


class FakeContract:
    def __init__(self, eth: "FakeEth", address: str):
        self.address = address
        self.functions = FakeFunctions(eth)
        self.events = FakeEvents()


class FakeEth:
    """The subset of ``web3.eth`` the services use."""

    def __init__(self, ledger: FakeLedger):
        self.ledger = ledger
        self.code = b"\x60\x80\x60\x40\x52"
        self.code_failures: List[Exception] = []
        self.get_code_calls = 0
        self.receipts: Dict[bytes, Dict[str, Any]] = {}
        self.transactions: List[Dict[str, Any]] = []
        self.receipt_error: Optional[Exception] = None
        self.block_number = 100
        self._hashes = itertools.count(1)

    def get_code(self, address):
        self.get_code_calls += 1
        if self.code_failures:
            raise self.code_failures.pop(0)
        return self.code

    def contract(self, address=None, abi=None):
        return FakeContract(self, address)

    def execute(self, name: str, args: tuple, sender: str) -> bytes:
        # Like eth_estimateGas, a revert surfaces before anything is sent
        events = getattr(self.ledger, name)(sender, *args)
        tx_hash = next(self._hashes).to_bytes(32, "big")
        self.block_number += 1
        self.transactions.append({"name": name, "args": args, "from": sender})
        self.receipts[tx_hash] = {
            "transactionHash": tx_hash,
            "blockNumber": self.block_number,
            "from": sender,
            "status": 0 if self.ledger.revert_on_chain else 1,
            "_events": events if self.ledger.emit_events else {},
        }
        return tx_hash

    def wait_for_transaction_receipt(self, tx_hash, timeout=None, poll_latency=None):
        if self.receipt_error is not None:
            raise self.receipt_error
        return self.receipts[tx_hash]


class FakeWeb3:
    def __init__(self, ledger: FakeLedger):
        self.eth = FakeEth(ledger)


class FakeGate:
    """NetworkGate stand-in handing out a ``FakeWeb3``."""

    def __init__(self, w3: FakeWeb3, wallet=None, error: Optional[Exception] = None):
        self.w3 = w3
        self.wallet = wallet
        self.error = error
        self.resolve_calls = 0

    @property
    def has_wallet(self) -> bool:
        return self.wallet is not None

    def resolve_provider(self):
        self.resolve_calls += 1
        if self.error is not None:
            raise self.error
        return self.w3

    def request_accounts(self) -> List[str]:
        if self.wallet is None:
            return []
        return list(self.wallet.request("eth_requestAccounts", []))


class FakeWallet(EventEmitter):
    """
    EIP-1193 wallet with scripted user decisions.

    Args:
        chain_id: Chain the wallet starts on
        known_chains: Chains it can switch to without registration
        reject_switch / reject_add: The user declines that prompt
        switch_delay: Seconds a switch prompt stays open
        accounts_error: EIP-1193 code ``eth_requestAccounts`` fails with
    """

    def __init__(self, chain_id: int, accounts: Optional[List[str]] = None, known_chains=None,
                 reject_switch: bool = False, reject_add: bool = False, switch_error: Optional[int] = None,
                 switch_delay: float = 0.0, accounts_error: Optional[int] = None):
        super().__init__()
        self.chain_id = chain_id
        self.accounts = list(accounts if accounts is not None else [ORGANIZER])
        self.known_chains = set(known_chains or []) | {chain_id}
        self.reject_switch = reject_switch
        self.reject_add = reject_add
        self.switch_error = switch_error
        self.switch_delay = switch_delay
        self.accounts_error = accounts_error
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def methods(self) -> List[str]:
        return [method for method, _ in self.calls]

    def request(self, method: str, params=None):
        with self._lock:
            self.calls.append((method, params))
        if method == "eth_chainId":
            return hex(self.chain_id)
        if method == "eth_requestAccounts" and self.accounts_error is not None:
            raise WalletRequestError(self.accounts_error, "User rejected the request.")
        if method in ("eth_accounts", "eth_requestAccounts"):
            return list(self.accounts)
        if method == "wallet_switchEthereumChain":
            time.sleep(self.switch_delay)
            if self.switch_error is not None:
                raise WalletRequestError(self.switch_error, "Internal wallet error")
            if self.reject_switch:
                raise WalletRequestError(4001, "User rejected the request.")
            target = int(params[0]["chainId"], 16)
            if target not in self.known_chains:
                raise WalletRequestError(4902, f"Unrecognized chain ID {params[0]['chainId']}")
            self.chain_id = target
            self.emit("chainChanged", hex(target))
            return None
        if method == "wallet_addEthereumChain":
            if self.reject_add:
                raise WalletRequestError(4001, "User rejected the request.")
            self.known_chains.add(int(params[0]["chainId"], 16))
            return None
        if method == "eth_call":
            raise WalletRequestError(3, "execution reverted: Meeting is full", "0x08c379a0")
        raise WalletRequestError(-32601, f"Method {method} not supported")

    def change_accounts(self, accounts: List[str]) -> None:
        self.accounts = list(accounts)
        self.emit("accountsChanged", list(accounts))
