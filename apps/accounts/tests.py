from django.contrib.auth import get_user_model
from rest_framework.test import APITestCase

from apps.accounts.models import Team, TeamMember
from apps.audit.models import AuditLog

User = get_user_model()


class TeamApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.designer = User.objects.create_user(username="designer", password="designer123", role="DESIGNER")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_jwt_login_valid_and_invalid(self):
        ok = self.client.post("/api/v1/auth/token/", {"username": "admin", "password": "admin123"}, format="json")
        self.assertEqual(ok.status_code, 200)
        self.assertIn("access", ok.data)

        bad = self.client.post("/api/v1/auth/token/", {"username": "admin", "password": "nope"}, format="json")
        self.assertEqual(bad.status_code, 401)

    def test_anonymous_request_is_rejected(self):
        response = self.client.get("/api/v1/teams/")
        self.assertEqual(response.status_code, 401)

    def test_admin_creates_team_and_manages_members(self):
        self.auth_as("admin", "admin123")
        created = self.client.post("/api/v1/teams/", {"name": "Kitchens", "description": "Modular"}, format="json")
        self.assertEqual(created.status_code, 201)
        team_id = created.data["id"]

        added = self.client.post(f"/api/v1/teams/{team_id}/members/", {"user": self.designer.id}, format="json")
        self.assertEqual(added.status_code, 201)
        self.assertEqual([m["username"] for m in added.data["members"]], ["designer"])
        self.assertTrue(AuditLog.objects.filter(action="team.member.add", entity_id=str(team_id)).exists())

        duplicate = self.client.post(f"/api/v1/teams/{team_id}/members/", {"user": self.designer.id}, format="json")
        self.assertEqual(duplicate.status_code, 400)
        self.assertEqual(duplicate.data["code"], "already_member")

        removed = self.client.delete(f"/api/v1/teams/{team_id}/members/", {"user": self.designer.id}, format="json")
        self.assertEqual(removed.status_code, 200)
        self.assertFalse(TeamMember.objects.filter(team_id=team_id).exists())

        missing = self.client.delete(f"/api/v1/teams/{team_id}/members/", {"user": self.designer.id}, format="json")
        self.assertEqual(missing.status_code, 404)

    def test_designer_can_view_but_not_manage_teams(self):
        Team.objects.create(name="Wardrobes")
        self.auth_as("designer", "designer123")

        listed = self.client.get("/api/v1/teams/")
        self.assertEqual(listed.status_code, 200)
        self.assertEqual(listed.data["count"], 1)

        forbidden = self.client.post("/api/v1/teams/", {"name": "Living"}, format="json")
        self.assertEqual(forbidden.status_code, 403)

    def test_blank_team_name_is_rejected(self):
        self.auth_as("admin", "admin123")
        response = self.client.post("/api/v1/teams/", {"name": "   "}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("name", response.data["fields"])


class UserApiTests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin", password="admin123", role="ADMIN")
        self.manager = User.objects.create_user(username="manager", password="manager123", role="MANAGER")
        self.designer = User.objects.create_user(username="designer", password="designer123", role="DESIGNER")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_admin_creates_user_who_can_log_in(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(
            "/api/v1/users/",
            {"username": "priya", "password": "Str0ng-pass-2026", "role": "MANAGER", "first_name": "Priya"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["role"], "MANAGER")
        self.assertNotIn("password", response.data)

        created = User.objects.get(username="priya")
        self.assertTrue(created.check_password("Str0ng-pass-2026"))
        self.assertNotEqual(created.password, "Str0ng-pass-2026")
        audit = AuditLog.objects.get(action="user.create", entity_id=str(created.id))
        self.assertNotIn("password", audit.payload)

        login = self.client.post(
            "/api/v1/auth/token/", {"username": "priya", "password": "Str0ng-pass-2026"}, format="json"
        )
        self.assertEqual(login.status_code, 200)

    def test_duplicate_username_is_rejected_case_insensitively(self):
        self.auth_as("admin", "admin123")
        response = self.client.post(
            "/api/v1/users/", {"username": "Designer", "password": "Str0ng-pass-2026"}, format="json"
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("username", response.data["fields"])
        self.assertEqual(User.objects.filter(username__iexact="designer").count(), 1)

    def test_create_requires_a_valid_password(self):
        self.auth_as("admin", "admin123")
        missing = self.client.post("/api/v1/users/", {"username": "ravi"}, format="json")
        self.assertEqual(missing.status_code, 400)
        self.assertIn("password", missing.data["fields"])

        weak = self.client.post("/api/v1/users/", {"username": "ravi", "password": "123"}, format="json")
        self.assertEqual(weak.status_code, 400)
        self.assertIn("password", weak.data["fields"])
        self.assertFalse(User.objects.filter(username="ravi").exists())

    def test_update_changes_role_and_password(self):
        self.auth_as("admin", "admin123")
        response = self.client.patch(
            f"/api/v1/users/{self.designer.id}/",
            {"role": "VIEWER", "password": "N3w-secret-2026"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.designer.refresh_from_db()
        self.assertEqual(self.designer.role, "VIEWER")
        self.assertTrue(self.designer.check_password("N3w-secret-2026"))
        audit = AuditLog.objects.get(action="user.update", entity_id=str(self.designer.id))
        self.assertTrue(audit.payload["password_changed"])

        renamed = self.client.patch(f"/api/v1/users/{self.designer.id}/", {"username": "designer"}, format="json")
        self.assertEqual(renamed.status_code, 200)

    def test_manager_can_list_but_not_create(self):
        self.auth_as("manager", "manager123")
        listed = self.client.get("/api/v1/users/", {"role": "DESIGNER"})
        self.assertEqual(listed.status_code, 200)
        self.assertEqual([row["username"] for row in listed.data["results"]], ["designer"])

        forbidden = self.client.post(
            "/api/v1/users/", {"username": "ravi", "password": "Str0ng-pass-2026"}, format="json"
        )
        self.assertEqual(forbidden.status_code, 403)

    def test_designer_cannot_list_users(self):
        self.auth_as("designer", "designer123")
        response = self.client.get("/api/v1/users/")
        self.assertEqual(response.status_code, 403)

    def test_admin_cannot_delete_own_account(self):
        self.auth_as("admin", "admin123")
        response = self.client.delete(f"/api/v1/users/{self.admin.id}/")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_state")
        self.assertTrue(User.objects.filter(pk=self.admin.pk).exists())

        deleted = self.client.delete(f"/api/v1/users/{self.designer.id}/")
        self.assertEqual(deleted.status_code, 204)
        self.assertFalse(User.objects.filter(pk=self.designer.pk).exists())
        self.assertTrue(AuditLog.objects.filter(action="user.delete", entity_id=str(self.designer.id)).exists())
