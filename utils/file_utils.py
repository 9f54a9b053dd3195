import os


def _normalize_extension(file_extension):
    if not file_extension.startswith('.'):
        file_extension = '.' + file_extension
    return file_extension.lower()


def _modified_time(path):
    # a file removed after the walk sorts first and fails later, at parse time
    try:
        return os.path.getmtime(path)
    except OSError:
        return 0.0


def find_replay_files(folder, file_extension, recursive, logger):
    """
    Replay files under folder, oldest first by modification time.
    A missing folder yields [] (nothing to sync is not an error).
    """
    if not os.path.isdir(folder):
        logger.warning(
            f"The provided path '{folder}' is not a directory. Please provide a valid directory path.")
        return []

    file_extension = _normalize_extension(file_extension)
    logger.debug(
        f"Searching for files with extension '{file_extension}' in folder '{folder}'"
        f"{' & subdirectories' if recursive else ''}...")

    found = []
    if recursive:
        for root, _, files in os.walk(folder):
            for filename in files:
                filepath = os.path.join(root, filename)
                if filename.lower().endswith(file_extension) and os.path.isfile(filepath):
                    found.append(filepath)
    else:
        for filename in os.listdir(folder):
            filepath = os.path.join(folder, filename)
            if filename.lower().endswith(file_extension) and os.path.isfile(filepath):
                found.append(filepath)

    found.sort(key=_modified_time)
    logger.debug(f"Found {len(found)} files with extension '{file_extension}' in '{folder}'")
    return found


def find_latest_file(folder, file_extension, logger):
    files = find_replay_files(folder, file_extension, True, logger)
    if not files:
        logger.debug(
            f"No files with extension '{file_extension}' were found in the folder '{folder}' and its subdirectories.")
        return None
    return files[-1]


def read_bounded(path, max_bytes):
    """Read at most max_bytes from path; larger files are truncated rather than loaded whole"""
    with open(path, 'rb') as handle:
        return handle.read(max_bytes)
