from pathlib import Path

def ensure_dirs(dirs):
    created = []

    for dir_path, dir_mode in dirs:
        dir_path = Path(dir_path)
        if dir_path.is_dir():
            continue
        if dir_path.exists():
            raise NotADirectoryError(
                f'"{dir_path}" exists and is not a directory'
            )
        # Another launcher may have raced us here
        dir_path.mkdir(mode=dir_mode, parents=True, exist_ok=True)
        created.append(dir_path)

    return created
