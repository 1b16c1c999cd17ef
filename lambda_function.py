from mangum import Mangum
from main import app

# lifespan="auto" runs init_db on cold start; a failure propagates to the host
# and the next invocation tries again
handler = Mangum(app, lifespan="auto")


def lambda_handler(event, context):
    return handler(event, context)
