from uuid import UUID

TEST_INSTRUCTOR_ID = UUID('dcef54de-bc89-4388-a7a8-dba5d8327447')
TEST_OTHER_INSTRUCTOR_ID = UUID('6667e14b-f8b7-45ee-998a-48832413d4c7')
TEST_ROOM_TYPE_ID = UUID('026ce9a5-eded-480f-b98c-a62b459807aa')
TEST_ROOM_ID = UUID('e850ce9b-d934-47b9-a029-b510f39d5bbc')
TEST_OTHER_ROOM_ID = UUID('d4c17e60-08de-47c7-9ef0-33ae8aa442fb')

# never inserted anywhere
MISSING_ID = UUID('00000000-0000-4000-8000-000000000000')

TEST_INSTRUCTOR_NAME = "Ada Lovelace"
TEST_INSTRUCTOR_EMAIL = "ada@example.com"
TEST_OTHER_INSTRUCTOR_NAME = "Grace Hopper"
TEST_ROOM_NAME = "Studio A"
TEST_OTHER_ROOM_NAME = "Studio B"

# service tests schedule this many days ahead so "now" never interferes
DAYS_AHEAD = 14
