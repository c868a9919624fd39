"""
Integration tests for the GraphQL API.

Tests cover:
- Queries with nested relations against seeded data
- Mutations and their error reporting
- Subscription fields per channel family
- Subscription streams detaching on close
- Subscription fields through schema.subscribe and over WebSocket
- HTTP endpoints through the FastAPI app
"""

import asyncio
import json
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from gatherdb_server.api import build_schema, create_app
from gatherdb_server.api.schema import AccountType, _relay
from gatherdb_server.config import ChannelFamily, Settings
from gatherdb_server.service import DataService
from tests.helpers import drain, settle, wait_until


@pytest.fixture
def schema(seeded_service):
    """Schema built for the seeded service's channel configuration."""
    return build_schema(seeded_service.channels)


@pytest.fixture
def context(seeded_service):
    return {"service": seeded_service}


class TestQueries:
    """Read operations."""

    @pytest.mark.asyncio
    async def test_list_accounts(self, schema, context):
        result = await schema.execute("{ accounts { id username email } }", context_value=context)

        assert result.errors is None
        assert result.data["accounts"] == [
            {"id": "1", "username": "ada", "email": "ada@example.com"},
            {"id": "2", "username": "grace", "email": "grace@example.com"},
        ]

    @pytest.mark.asyncio
    async def test_nested_relations(self, schema, context):
        query = """
        {
            event(id: "1") {
                title
                startTime
                owner { username }
                location { name events { id } }
                participations { account { username } }
            }
        }
        """

        result = await schema.execute(query, context_value=context)

        assert result.errors is None
        event = result.data["event"]
        assert event["title"] == "Reading group"
        assert event["startTime"] == "18:00"
        assert event["owner"] == {"username": "ada"}
        assert event["location"] == {"name": "Library", "events": [{"id": "1"}]}
        assert [p["account"]["username"] for p in event["participations"]] == ["grace", "ada"]

    @pytest.mark.asyncio
    async def test_dangling_reference_is_null(self, schema, context):
        result = await schema.execute('{ event(id: "2") { location { id } } }', context_value=context)

        assert result.errors is None
        assert result.data["event"]["location"] is None

    @pytest.mark.asyncio
    async def test_missing_entity_is_null(self, schema, context):
        result = await schema.execute('{ account(id: "404") { id } }', context_value=context)

        assert result.errors is None
        assert result.data["account"] is None


class TestMutations:
    """Write operations."""

    @pytest.mark.asyncio
    async def test_add_then_query(self, schema, context):
        mutation = """
        mutation {
            addParticipation(data: {accountId: "2", eventId: "2"}) {
                id
                account { username }
                event { title }
            }
        }
        """

        result = await schema.execute(mutation, context_value=context)

        assert result.errors is None
        added = result.data["addParticipation"]
        assert added["account"] == {"username": "grace"}
        assert added["event"] == {"title": "Walk"}

        check = await schema.execute(
            '{ account(id: "2") { participations { id } } }', context_value=context
        )
        assert {"id": added["id"]} in check.data["account"]["participations"]

    @pytest.mark.asyncio
    async def test_update_merges(self, schema, context):
        mutation = 'mutation { updateAccount(id: "1", data: {email: "ada@new.org"}) { username email } }'

        result = await schema.execute(mutation, context_value=context)

        assert result.errors is None
        assert result.data["updateAccount"] == {"username": "ada", "email": "ada@new.org"}

    @pytest.mark.asyncio
    async def test_update_not_found(self, schema, context, seeded_service):
        """A missing id yields null data and a NOT_FOUND error, publishing nothing."""
        sub = seeded_service.bus.subscribe("ACCOUNT_UPDATED")
        mutation = 'mutation { updateAccount(id: "404", data: {email: "x"}) { id } }'

        result = await schema.execute(mutation, context_value=context)

        assert result.data["updateAccount"] is None
        assert len(result.errors) == 1
        assert result.errors[0].extensions["code"] == "NOT_FOUND"
        assert result.errors[0].message == "Account not found: 404"
        assert drain(sub) == []

    @pytest.mark.asyncio
    async def test_delete_not_found(self, schema, context):
        result = await schema.execute('mutation { deleteEvent(id: "404") { id } }', context_value=context)

        assert result.data["deleteEvent"] is None
        assert result.errors[0].extensions["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_missing_required_argument(self, schema, context):
        """Shape errors are rejected by GraphQL validation."""
        result = await schema.execute(
            'mutation { addAccount(data: {username: "x"}) { id } }', context_value=context
        )

        assert result.errors
        assert len(context["service"].store.accounts) == 2

    @pytest.mark.asyncio
    async def test_delete_all_publishes_each(self, schema, context, seeded_service):
        sub = seeded_service.bus.subscribe("PARTICIPATION_DELETED")

        result = await schema.execute(
            "mutation { deleteAllParticipations { id } }", context_value=context
        )

        assert result.data["deleteAllParticipations"] == [{"id": "1"}, {"id": "2"}]
        assert [p.id for p in drain(sub)] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_deleted_event_unresolvable(self, schema, context):
        await schema.execute('mutation { deleteEvent(id: "1") { id } }', context_value=context)

        result = await schema.execute(
            '{ participation(id: "1") { event { id } } }', context_value=context
        )

        assert result.data["participation"]["event"] is None


class TestSubscriptionSchema:
    """Subscription fields exposed per configuration."""

    def test_entity_family_fields(self, schema):
        sdl = schema.as_str()

        assert "accountCreated: Account!" in sdl
        assert "participationDeleted: Participation!" in sdl
        assert "locationCreated" not in sdl
        assert "counter" not in sdl

    def test_location_fields_when_observable(self):
        service = DataService(Settings(observable_kinds=["location"]))

        sdl = build_schema(service.channels).as_str()

        assert "locationUpdated: Location!" in sdl
        assert "accountCreated" not in sdl

    def test_counter_family_fields(self):
        service = DataService(Settings(subscription_family=ChannelFamily.COUNTER))

        sdl = build_schema(service.channels).as_str()

        assert "counter: Int!" in sdl
        assert "accountCreated" not in sdl

    def test_no_observable_kinds(self):
        """With nothing observable the schema has no Subscription type."""
        service = DataService(Settings(observable_kinds=[]))

        sdl = build_schema(service.channels).as_str()

        assert "type Subscription" not in sdl


class TestSubscriptionStreams:
    """Subscription resolvers relaying channel payloads."""

    @pytest.mark.asyncio
    async def test_relay_delivers_created_account(self, seeded_service):
        info = SimpleNamespace(context={"service": seeded_service})
        stream = _relay(info, "accountCreated", AccountType.from_entity)

        pull = asyncio.create_task(stream.__anext__())
        await asyncio.sleep(0)
        account = seeded_service.mutations.accounts.create({"username": "lin", "email": "l@x.com"})
        item = await asyncio.wait_for(pull, timeout=1)

        assert item.id == account.id
        assert item.username == "lin"
        await stream.aclose()
        assert seeded_service.bus.attachment_count() == 0

    @pytest.mark.asyncio
    async def test_relay_cancel_detaches(self, seeded_service):
        """Cancelling a waiting subscriber releases its bus attachment."""
        info = SimpleNamespace(context={"service": seeded_service})
        stream = _relay(info, "eventUpdated", lambda e: e)

        pull = asyncio.create_task(stream.__anext__())
        await asyncio.sleep(0)
        assert seeded_service.bus.attachment_count("EVENT_UPDATED") == 1

        pull.cancel()
        await asyncio.gather(pull, return_exceptions=True)

        assert seeded_service.bus.attachment_count() == 0
        assert seeded_service.channels.active_streams == 0

    @pytest.mark.asyncio
    async def test_relay_counter(self):
        service = DataService(Settings(subscription_family=ChannelFamily.COUNTER, counter_period=0.01))
        info = SimpleNamespace(context={"service": service})
        stream = _relay(info, "counter", int)

        ticks = [await asyncio.wait_for(stream.__anext__(), timeout=1) for _ in range(3)]

        assert ticks == [1, 2, 3]
        await stream.aclose()
        assert service.channels.active_streams == 0


class TestSubscriptionFields:
    """Subscription fields executed through the schema."""

    QUERY = "subscription { accountCreated { id username } }"

    @pytest.mark.asyncio
    async def test_account_created_reaches_every_consumer(self, schema, context, seeded_service):
        """Both consumers see a create; closing one leaves the other attached."""
        bus = seeded_service.bus
        first = await schema.subscribe(self.QUERY, context_value=context)
        second = await schema.subscribe(self.QUERY, context_value=context)
        pulls = [asyncio.create_task(s.__anext__()) for s in (first, second)]
        await settle(lambda: bus.attachment_count("ACCOUNT_CREATED") == 2)

        lin = seeded_service.mutations.accounts.create({"username": "lin", "email": "l@x.com"})
        results = await asyncio.wait_for(asyncio.gather(*pulls), timeout=1)

        for result in results:
            assert result.errors is None
            assert result.data == {"accountCreated": {"id": lin.id, "username": "lin"}}

        await first.aclose()
        assert bus.attachment_count("ACCOUNT_CREATED") == 1

        pull = asyncio.create_task(second.__anext__())
        await asyncio.sleep(0)
        mo = seeded_service.mutations.accounts.create({"username": "mo", "email": "m@x.com"})
        result = await asyncio.wait_for(pull, timeout=1)

        assert result.data == {"accountCreated": {"id": mo.id, "username": "mo"}}
        await second.aclose()
        assert bus.attachment_count() == 0

    @pytest.mark.asyncio
    async def test_counter_field(self):
        service = DataService(Settings(subscription_family=ChannelFamily.COUNTER, counter_period=0.01))
        schema = build_schema(service.channels)

        ticks = await schema.subscribe("subscription { counter }", context_value={"service": service})
        values = [(await asyncio.wait_for(ticks.__anext__(), timeout=1)).data for _ in range(3)]

        assert values == [{"counter": 1}, {"counter": 2}, {"counter": 3}]
        await ticks.aclose()
        assert service.channels.active_streams == 0


class TestHttpApp:
    """FastAPI application."""

    @pytest.fixture
    def seed_file(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text(
            json.dumps(
                {
                    "users": [{"id": 1, "username": "ada", "email": "ada@example.com"}],
                    "locations": [],
                    "events": [],
                    "participants": [],
                }
            )
        )
        return str(path)

    @pytest.fixture
    def client(self, seed_file):
        """Test client with the lifespan running."""
        app = create_app(Settings(seed_path=seed_file))
        with TestClient(app) as client:
            yield client

    def test_graphql_query(self, client):
        response = client.post("/graphql", json={"query": "{ accounts { id username } }"})

        assert response.status_code == 200
        assert response.json()["data"]["accounts"] == [{"id": "1", "username": "ada"}]

    def test_graphql_mutation_error(self, client):
        response = client.post(
            "/graphql",
            json={"query": 'mutation { deleteAccount(id: "9") { id } }'},
        )

        body = response.json()
        assert body["data"]["deleteAccount"] is None
        assert body["errors"][0]["extensions"]["code"] == "NOT_FOUND"

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["healthy"] is True
        assert body["subscription_family"] == "entity"
        assert body["collections"]["accounts"] == 1


class TestWebSocketSubscriptions:
    """Subscriptions over the graphql-transport-ws protocol."""

    def _connect(self, client):
        return client.websocket_connect("/graphql", subprotocols=["graphql-transport-ws"])

    def _subscribe(self, ws, query):
        ws.send_json({"type": "connection_init"})
        assert ws.receive_json()["type"] == "connection_ack"
        ws.send_json({"id": "1", "type": "subscribe", "payload": {"query": query}})

    def test_account_created(self):
        service = DataService(Settings())
        app = create_app(Settings(), service=service)

        with TestClient(app) as client, self._connect(client) as ws:
            self._subscribe(ws, "subscription { accountCreated { id username } }")
            wait_until(lambda: service.bus.attachment_count("ACCOUNT_CREATED") == 1)

            created = client.post(
                "/graphql",
                json={"query": 'mutation { addAccount(data: {username: "lin", email: "l@x.com"}) { id } }'},
            ).json()["data"]["addAccount"]
            message = ws.receive_json()

            assert message["type"] == "next"
            assert message["id"] == "1"
            assert message["payload"]["data"] == {
                "accountCreated": {"id": created["id"], "username": "lin"}
            }

            ws.send_json({"id": "1", "type": "complete"})
            wait_until(lambda: service.bus.attachment_count() == 0)
            assert service.channels.active_streams == 0

    def test_counter(self):
        settings = Settings(subscription_family=ChannelFamily.COUNTER, counter_period=0.01)
        service = DataService(settings)
        app = create_app(settings, service=service)

        with TestClient(app) as client, self._connect(client) as ws:
            self._subscribe(ws, "subscription { counter }")

            values = [ws.receive_json()["payload"]["data"]["counter"] for _ in range(3)]

            assert values == [1, 2, 3]
            ws.send_json({"id": "1", "type": "complete"})
            wait_until(lambda: service.channels.active_streams == 0)
