"""GraphQL surface: queries, mutation envelopes and field permissions."""

from factories import auth_headers, make_admin, make_class, make_package, make_purchase, make_user


async def _gql(client, query, variables=None, user=None):
    headers = auth_headers(user) if user is not None else {}
    response = await client.post("/graphql", json={"query": query, "variables": variables or {}}, headers=headers)
    assert response.status_code == 200
    return response.json()


SCHEDULE = """
query {
  schedule {
    id
    maxCapacity
    availableSpots
    disciplineName
  }
}
"""

CREATE_RESERVATION = """
mutation Book($input: CreateReservationInput!) {
  createReservation(input: $input) {
    success
    message
    code
    reservation { classId status classesUsed }
    updatedPurchase { classesRemaining }
  }
}
"""

UPDATE_SETTINGS = """
mutation Save($input: [SiteSettingInput!]!) {
  updateSiteSettings(input: $input) {
    success
    code
    settings { key value }
  }
}
"""


class TestQueries:

    async def test_schedule_lists_upcoming_classes(self, client, db):
        studio_class = await make_class(db, max_capacity=6)

        body = await _gql(client, SCHEDULE)

        assert body["data"]["schedule"] == [{
            "id": studio_class.id,
            "maxCapacity": 6,
            "availableSpots": 6,
            "disciplineName": "Yoga",
        }]

    async def test_site_settings_are_public(self, client):
        body = await _gql(client, "{ siteSettings { key value } }")

        values = {item["key"]: item["value"] for item in body["data"]["siteSettings"]}
        assert values["cancellationHours"] == "4"
        assert values["defaultCapacity"] == "15"


class TestReservationMutations:

    async def test_create_reservation(self, client, db):
        user = await make_user(db)
        await make_purchase(db, user, await make_package(db, class_count=4))
        studio_class = await make_class(db)

        body = await _gql(client, CREATE_RESERVATION, {"input": {"classId": studio_class.id}}, user=user)

        result = body["data"]["createReservation"]
        assert result["success"] is True
        assert result["reservation"] == {"classId": studio_class.id, "status": "CONFIRMED", "classesUsed": 1}
        assert result["updatedPurchase"] == {"classesRemaining": 3}

    async def test_domain_error_is_returned_in_envelope(self, client, db):
        user = await make_user(db)
        studio_class = await make_class(db)

        body = await _gql(client, CREATE_RESERVATION, {"input": {"classId": studio_class.id}}, user=user)

        result = body["data"]["createReservation"]
        assert result["success"] is False
        assert result["code"] == "NO_ACTIVE_PACKAGE"
        assert result["reservation"] is None

    async def test_requires_authentication(self, client, db):
        studio_class = await make_class(db)

        body = await _gql(client, CREATE_RESERVATION, {"input": {"classId": studio_class.id}})

        assert body["data"] is None
        assert body["errors"][0]["message"] == "Authentication required."


class TestAdminMutations:

    async def test_member_cannot_update_settings(self, client, db):
        member = await make_user(db)

        body = await _gql(client, UPDATE_SETTINGS, {"input": [{"key": "cancellationHours", "value": "8"}]}, user=member)

        assert body["errors"][0]["message"] == "Admin access required."

    async def test_admin_updates_settings(self, client, db):
        admin = await make_admin(db)

        body = await _gql(client, UPDATE_SETTINGS, {"input": [{"key": "cancellationHours", "value": "8"}]}, user=admin)

        result = body["data"]["updateSiteSettings"]
        assert result["success"] is True
        assert {"key": "cancellationHours", "value": "8"} in result["settings"]

    async def test_invalid_setting_value(self, client, db):
        admin = await make_admin(db)

        body = await _gql(client, UPDATE_SETTINGS, {"input": [{"key": "maxWeeksAhead", "value": "-3"}]}, user=admin)

        result = body["data"]["updateSiteSettings"]
        assert result["success"] is False
        assert result["code"] == "VALIDATION_ERROR"

    async def test_admin_creates_discipline(self, client, db):
        admin = await make_admin(db)
        query = """
        mutation {
          createDiscipline(input: {name: "Hot Yoga"}) {
            success
            discipline { slug isActive }
          }
        }
        """

        body = await _gql(client, query, user=admin)

        result = body["data"]["createDiscipline"]
        assert result["success"] is True
        assert result["discipline"] == {"slug": "hot-yoga", "isActive": True}
