from rest_framework import serializers

from .models import State, City, Branch


class StateSerializer(serializers.ModelSerializer):
    class Meta:
        model = State
        fields = ['id', 'name']


class CitySerializer(serializers.ModelSerializer):
    state = StateSerializer(read_only=True)

    class Meta:
        model = City
        fields = ['id', 'name', 'state']


class BranchSerializer(serializers.ModelSerializer):
    city_name = serializers.CharField(source='city.name', read_only=True)
    state_name = serializers.CharField(source='city.state.name', read_only=True)

    class Meta:
        model = Branch
        fields = ['id', 'name', 'city_name', 'state_name']


class ActorBasicSerializer(serializers.Serializer):
    """Minimal actor representation, shared by all four actor tables"""
    id = serializers.IntegerField(read_only=True)
    referral_code = serializers.CharField(read_only=True)
    full_name = serializers.CharField(read_only=True)
    email = serializers.EmailField(read_only=True)
    role = serializers.CharField(read_only=True)
    is_active = serializers.BooleanField(read_only=True)


class ResolvedActorSerializer(serializers.Serializer):
    """Actor with its branch/city/state placement"""
    role = serializers.CharField(read_only=True)
    actor = ActorBasicSerializer(read_only=True)
    context = serializers.SerializerMethodField()

    def get_context(self, obj):
        return obj.context()


class AncestorSerializer(serializers.Serializer):
    level = serializers.CharField(read_only=True)
    actor = ActorBasicSerializer(read_only=True)
