"""Reserved for a podman node provider; it holds no modules yet."""