# Shared infrastructure: config, REST client, auth helpers, timers, session
