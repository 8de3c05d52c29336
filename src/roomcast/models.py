from django.db import models


class ChatUser(models.Model):
    uid = models.CharField(max_length=32, unique=True)
    display_name = models.CharField(max_length=255)
    delivery_token = models.TextField(blank=True, default="")
    registered_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.display_name} - {self.uid}"


class Room(models.Model):
    uid = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.name} - {self.uid}"


class Membership(models.Model):
    room = models.ForeignKey(
        Room, on_delete=models.CASCADE, related_name="memberships"
    )
    # Validated by the configured user registry, which may live elsewhere
    user_uid = models.CharField(max_length=32)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [["room", "user_uid"]]
        indexes = [
            models.Index(fields=["room", "joined_at"], name="roomcast_room_joined_idx"),
        ]

    def __str__(self):
        return f"{self.user_uid} - {self.room_id}"
