from typing import Optional
import json
import logging
import uuid

from redis import Redis

from onboarding.core.exceptions import WaitlistFullError
from onboarding.services.identity import Identity, IdentityKind
from onboarding.services.waitlist_store import AdmissionResult, WaitlistEntry, WaitlistStore

logger = logging.getLogger(__name__)

# KEYS: queue list, identity index hash, entry records hash, positions hash
# ARGV: candidate entry id, identity value, capacity, record JSON
ENQUEUE_OR_LOOKUP_SCRIPT = """
local existing = redis.call('HGET', KEYS[2], ARGV[2])
if existing then
    redis.call('HSET', KEYS[3], existing, ARGV[4])
    return {tonumber(redis.call('HGET', KEYS[4], existing)), 1, existing}
end

local length = redis.call('LLEN', KEYS[1])
if length >= tonumber(ARGV[3]) then
    return {-1, 0, ''}
end

local position = redis.call('RPUSH', KEYS[1], ARGV[1])
redis.call('HSET', KEYS[2], ARGV[2], ARGV[1])
redis.call('HSET', KEYS[4], ARGV[1], position)
redis.call('HSET', KEYS[3], ARGV[1], ARGV[4])
return {position, 0, ARGV[1]}
"""

# KEYS: identity index hash, positions hash
# ARGV: identity value
POSITION_BY_IDENTITY_SCRIPT = """
local entry_id = redis.call('HGET', KEYS[1], ARGV[1])
if not entry_id then
    return 0
end
local position = redis.call('HGET', KEYS[2], entry_id)
if not position then
    return 0
end
return tonumber(position)
"""


class RedisWaitlistStore(WaitlistStore):
    """Waitlist shared by every process pointed at the same Redis.

    Mutations and identity lookups run as Lua scripts, which Redis executes
    atomically, so no client-side locking is needed.
    """

    def __init__(self, client: Redis, prefix: str = "waitlist"):
        self.client = client
        self.keys = {
            "queue": f"{prefix}:list",
            "users": f"{prefix}:users",
            "positions": f"{prefix}:positions",
            IdentityKind.EMAIL: f"{prefix}:emails",
            IdentityKind.PHONE: f"{prefix}:phones",
        }
        self._enqueue_or_lookup = client.register_script(ENQUEUE_OR_LOOKUP_SCRIPT)
        self._position_by_identity = client.register_script(POSITION_BY_IDENTITY_SCRIPT)

    def enqueue_or_lookup(self, identity, metadata, capacity):
        candidate_id = str(uuid.uuid4())
        record = json.dumps(
            {"identity": identity.value, "kind": identity.kind.value, "metadata": metadata or {}},
            default=str,
        )
        position, existed, entry_id = self._enqueue_or_lookup(
            keys=[self.keys["queue"], self.keys[identity.kind], self.keys["users"], self.keys["positions"]],
            args=[candidate_id, identity.value, capacity, record],
        )
        if int(position) == -1:
            raise WaitlistFullError(capacity)
        if not int(existed):
            logger.debug(f"Admitted {identity.kind.value} entry {entry_id} at position {position}")
        if isinstance(entry_id, bytes):
            entry_id = entry_id.decode()
        return AdmissionResult(entry_id, int(position), bool(int(existed)))

    def position_of(self, identity):
        return int(
            self._position_by_identity(
                keys=[self.keys[identity.kind], self.keys["positions"]], args=[identity.value]
            )
        )

    def exists(self, identity):
        return bool(self.client.hexists(self.keys[identity.kind], identity.value))

    def position_of_entry(self, entry_id):
        position = self.client.hget(self.keys["positions"], entry_id)
        return int(position) if position is not None else 0

    def get_entry(self, entry_id: str) -> Optional[WaitlistEntry]:
        with self.client.pipeline() as pipe:
            pipe.hget(self.keys["users"], entry_id)
            pipe.hget(self.keys["positions"], entry_id)
            raw, position = pipe.execute()
        if raw is None or position is None:
            return None
        record = json.loads(raw)
        identity = Identity(IdentityKind(record["kind"]), record["identity"])
        return WaitlistEntry(entry_id, int(position), identity, record.get("metadata") or {})

    def __len__(self) -> int:
        return int(self.client.llen(self.keys["queue"]))
