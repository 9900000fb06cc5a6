from app.models.content import ContentEntity, Transcript, Insight, Post, ScheduledPost
from app.models.relationship import ContentRelationship
from app.models.job import ProcessingJob
from app.models.platform import Platform
