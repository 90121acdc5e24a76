from rest_framework import serializers
from .models import AuditLog


class AuditLogSerializer(serializers.ModelSerializer):
    # Candidate-driven entries have no actor
    actor_email = serializers.CharField(source='actor.email', read_only=True, default=None)
    actor_role = serializers.CharField(source='actor.role', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = ['id', 'actor', 'actor_email', 'actor_role', 'action', 'target_model', 'target_object_id', 'timestamp', 'details']
