TRANSCRIPT = "transcript"
INSIGHT = "insight"
POST = "post"
SCHEDULED_POST = "scheduled_post"

CONTENT_TYPES = (TRANSCRIPT, INSIGHT, POST, SCHEDULED_POST)

# child type -> required parent type
PARENT_TYPE = {
    INSIGHT: TRANSCRIPT,
    POST: INSIGHT,
    SCHEDULED_POST: POST,
}

RELATIONSHIP_TYPES = {
    (TRANSCRIPT, INSIGHT): "transcript_to_insight",
    (INSIGHT, POST): "insight_to_post",
    (POST, SCHEDULED_POST): "post_to_scheduled",
}

STATES = {
    TRANSCRIPT: {"raw", "cleaning", "cleaned", "processing_insights", "insights_generated", "archived"},
    INSIGHT: {"needs_review", "approved", "rejected", "archived"},
    POST: {
        "needs_review",
        "approved",
        "rejected",
        "scheduling",
        "scheduled",
        "publishing",
        "published",
        "failed",
        "archived",
    },
    SCHEDULED_POST: {"scheduling", "scheduled", "publishing", "published", "failed", "cancelled", "archived"},
}

INITIAL_STATE = {
    TRANSCRIPT: "raw",
    INSIGHT: "needs_review",
    POST: "needs_review",
    SCHEDULED_POST: "scheduled",
}

TERMINAL_STATES = {
    TRANSCRIPT: {"insights_generated"},
    INSIGHT: {"approved", "rejected"},
    POST: {"published", "rejected"},
    SCHEDULED_POST: {"published", "cancelled"},
}

# posts in these states hold a slot on their platform's calendar
SLOT_HOLDING_STATES = ("scheduled", "publishing")

CLEAN_TRANSCRIPT = "clean_transcript"
EXTRACT_INSIGHTS = "extract_insights"
GENERATE_POSTS = "generate_posts"

JOB_TYPES = (CLEAN_TRANSCRIPT, EXTRACT_INSIGHTS, GENERATE_POSTS)

# job type -> content type the job runs against
JOB_SOURCE_TYPE = {
    CLEAN_TRANSCRIPT: TRANSCRIPT,
    EXTRACT_INSIGHTS: TRANSCRIPT,
    GENERATE_POSTS: INSIGHT,
}

JOB_PENDING = "pending"
JOB_PROCESSING = "processing"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"

JOB_ACTIVE_STATES = (JOB_PENDING, JOB_PROCESSING)
JOB_STATES = (JOB_PENDING, JOB_PROCESSING, JOB_COMPLETED, JOB_FAILED)
