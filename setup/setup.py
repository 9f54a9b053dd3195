import mysql.connector
import sys
import os

# Add the parent directory to path to import config and the schema
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from settings import config
from core.repositories.sql_replay_repository import SCHEMA_STATEMENTS

# Database connection parameters from config
db_params = {
    'user': config.DB_USER,
    'password': config.DB_PASSWORD,
    'host': config.DB_HOST,
    'port': config.DB_PORT,
    'connection_timeout': config.DB_CONNECT_TIMEOUT_SECONDS,
}

print(f"Connecting to MySQL at {config.DB_HOST}:{config.DB_PORT} as {config.DB_USER}")

connection = None
cursor = None
try:
    # Establish a database connection
    connection = mysql.connector.connect(**db_params)
    print("Database connection established successfully.")

    cursor = connection.cursor()
    cursor.execute(f"CREATE DATABASE IF NOT EXISTS `{config.DB_NAME}` CHARACTER SET utf8mb4")
    cursor.execute(f"USE `{config.DB_NAME}`")
    print(f"Using database '{config.DB_NAME}'.")

    print(f"Found {len(SCHEMA_STATEMENTS)} SQL statements to execute.")

    # Execute each SQL statement
    for i, statement in enumerate(SCHEMA_STATEMENTS, 1):
        print(f"Executing statement {i}/{len(SCHEMA_STATEMENTS)}...")
        cursor.execute(statement)
        connection.commit()
        print(f"Statement {i} completed successfully")

    print("\n=== Database setup completed ===")
    print("You can now run the application.")

except mysql.connector.Error as err:
    print(f"Database error: {err}")
    sys.exit(1)
finally:
    # Close the cursor and connection
    if cursor is not None:
        cursor.close()
    if connection is not None and connection.is_connected():
        connection.close()
        print("Database connection closed.")
