from django.db import transaction
from django.db.models import Q
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.accounts.models import Team, TeamMember, User
from apps.accounts.serializers import TeamMemberSerializer, TeamSerializer, UserSerializer
from apps.audit.services import record_audit
from apps.common.exceptions import InvalidState, error_response
from apps.common.permissions import RolePermission

USER_AUDIT_FIELDS = ("username", "first_name", "last_name", "email", "phone", "role", "is_active")


class TeamViewSet(viewsets.ModelViewSet):
    queryset = Team.objects.prefetch_related("members").order_by("name")
    serializer_class = TeamSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["teams.view"],
        "retrieve": ["teams.view"],
        "create": ["teams.manage"],
        "update": ["teams.manage"],
        "partial_update": ["teams.manage"],
        "destroy": ["teams.manage"],
        "members": ["teams.manage"],
    }

    @action(detail=True, methods=["post", "delete"])
    def members(self, request, pk=None):
        team = self.get_object()
        serializer = TeamMemberSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.validated_data["user"]

        if request.method == "POST":
            _, created = TeamMember.objects.get_or_create(team=team, user=user)
            if not created:
                return error_response("already_member", "The user already belongs to this team.")
            record_audit(
                actor=request.user,
                action="team.member.add",
                entity_type="team",
                entity_id=team.id,
                payload={"user_id": str(user.id)},
            )
            return Response(self.get_serializer(team).data, status=201)

        deleted, _ = TeamMember.objects.filter(team=team, user=user).delete()
        if not deleted:
            return error_response("not_member", "The user does not belong to this team.", status_code=404)
        record_audit(
            actor=request.user,
            action="team.member.remove",
            entity_type="team",
            entity_id=team.id,
            payload={"user_id": str(user.id)},
        )
        return Response(self.get_serializer(team).data, status=200)


class UserViewSet(viewsets.ModelViewSet):
    queryset = User.objects.order_by("username")
    serializer_class = UserSerializer
    permission_classes = [RolePermission]
    capability_map = {
        "list": ["users.view"],
        "retrieve": ["users.view"],
        "create": ["users.manage"],
        "update": ["users.manage"],
        "partial_update": ["users.manage"],
        "destroy": ["users.manage"],
    }

    def get_queryset(self):
        queryset = super().get_queryset()
        role = self.request.query_params.get("role")
        if role:
            queryset = queryset.filter(role=role)
        query = self.request.query_params.get("q")
        if query:
            queryset = queryset.filter(
                Q(username__icontains=query) | Q(first_name__icontains=query) | Q(last_name__icontains=query)
            )
        return queryset

    def _audit(self, action_name, user, changed):
        payload = {field: str(changed[field]) for field in USER_AUDIT_FIELDS if field in changed}
        if "password" in changed:
            payload["password_changed"] = True
        record_audit(
            actor=self.request.user,
            action=action_name,
            entity_type="user",
            entity_id=user.id,
            payload=payload,
        )

    def perform_create(self, serializer):
        with transaction.atomic():
            user = serializer.save()
            self._audit("user.create", user, serializer.validated_data)

    def perform_update(self, serializer):
        with transaction.atomic():
            user = serializer.save()
            self._audit("user.update", user, serializer.validated_data)

    def perform_destroy(self, instance):
        if instance.pk == self.request.user.pk:
            raise InvalidState("You cannot delete your own account.")
        with transaction.atomic():
            record_audit(
                actor=self.request.user,
                action="user.delete",
                entity_type="user",
                entity_id=instance.id,
                payload={"username": instance.username},
            )
            instance.delete()
