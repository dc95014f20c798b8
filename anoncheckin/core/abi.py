"""ABI of the AnonymousCheckIn ledger contract.

Only the surface this service consumes is listed.
"""


def _uint(name: str) -> dict:
    return {"internalType": "uint256", "name": name, "type": "uint256"}


CHECKIN_ABI = [
    {
        "inputs": [],
        "name": "nextMeetingId",
        "outputs": [_uint("")],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "getActiveMeetings",
        "outputs": [{"internalType": "uint256[]", "name": "", "type": "uint256[]"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [_uint("meetingId")],
        "name": "getMeetingDetails",
        "outputs": [
            {"internalType": "address", "name": "creator", "type": "address"},
            {"internalType": "string", "name": "title", "type": "string"},
            _uint("startTime"),
            _uint("endTime"),
            _uint("maxParticipants"),
            _uint("participantCount"),
            {"internalType": "uint8", "name": "status", "type": "uint8"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [_uint("meetingId"), _uint("participantId")],
        "name": "isParticipant",
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "string", "name": "title", "type": "string"},
            _uint("maxParticipants"),
        ],
        "name": "createMeeting",
        "outputs": [_uint("")],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [_uint("meetingId"), _uint("participantId")],
        "name": "checkIn",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [_uint("meetingId")],
        "name": "endMeeting",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "uint256", "name": "meetingId", "type": "uint256"},
            {"indexed": True, "internalType": "address", "name": "creator", "type": "address"},
            {"indexed": False, "internalType": "string", "name": "title", "type": "string"},
            {"indexed": False, "internalType": "uint256", "name": "maxParticipants", "type": "uint256"},
        ],
        "name": "MeetingCreated",
        "type": "event",
    },
]
